"""
Schema Change Interfaces

A Controller sources schema changes for one keyspace from an external
change-tracking system and is told how each stage went. An Executor applies
the changes to every shard of the keyspace.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from .models import ExecuteResult


class Controller(ABC):
    """
    Source of schema changes for one keyspace, plus lifecycle callbacks.

    The runner opens the controller, reads pending statements and reports
    the outcome of every stage through the on_* hooks so the controller can
    persist or publish status. close() is always called once open()
    succeeded.
    """

    @abstractmethod
    async def open(self) -> None:
        """Acquire whatever the controller reads from."""

    @abstractmethod
    async def read(self) -> List[str]:
        """Return the pending statements, in order. Empty means nothing to do."""

    @abstractmethod
    def close(self) -> None:
        """Release what open() acquired."""

    @property
    @abstractmethod
    def keyspace(self) -> str:
        """Keyspace the statements apply to. Valid after a non-empty read."""

    @abstractmethod
    async def on_read_success(self) -> None:
        pass

    @abstractmethod
    async def on_read_fail(self, err: Exception) -> None:
        pass

    @abstractmethod
    async def on_validation_success(self) -> None:
        pass

    @abstractmethod
    async def on_validation_fail(self, err: Exception) -> None:
        pass

    @abstractmethod
    async def on_executor_complete(self, result: ExecuteResult) -> None:
        pass


class Executor(ABC):
    """
    Applies schema changes to the shards of a keyspace.

    execute() reports shard failures inside the returned ExecuteResult and
    does not raise for them.
    """

    @abstractmethod
    async def open(self, keyspace: str) -> None:
        pass

    @abstractmethod
    async def validate(self, sqls: List[str]) -> None:
        """
        Check statements before anything is applied.

        Raises:
            ValidationError: If the statements must not be executed
        """

    @abstractmethod
    async def execute(self, sqls: List[str]) -> ExecuteResult:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


# Builds a Controller from string parameters (see controllers.SCHEMA_CHANGE_DIR_NAME).
ControllerFactory = Callable[[Dict[str, str]], Controller]
