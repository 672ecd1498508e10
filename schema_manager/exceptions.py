"""
Schema Manager Exceptions

Exception hierarchy for schema change runs. Read and validation failures stop
a run before anything is applied; SchemaChangeError reports a run that was
attempted and failed on one or more shards.
"""

from typing import Optional, Dict, Any, TYPE_CHECKING

from shardops_exceptions import ShardOpsError

if TYPE_CHECKING:
    from .models import ExecuteResult


class SchemaManagerError(ShardOpsError):
    """
    Base exception for schema change operations.

    Attributes:
        message: Human-readable error message
        keyspace: Keyspace involved (if applicable)
        context: Additional context information as key-value pairs
    """

    def __init__(
        self,
        message: str,
        keyspace: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.keyspace = keyspace
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.keyspace:
            parts.append(f"Keyspace: {self.keyspace}")
        if self.context:
            parts.append(f"Context: {self.context}")
        return " | ".join(parts)


class ValidationError(SchemaManagerError):
    """
    Raised by an executor when schema changes are rejected before execution.

    Additional Attributes:
        sql: The offending statement (if applicable)
    """

    def __init__(
        self,
        message: str,
        sql: Optional[str] = None,
        keyspace: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, keyspace, context)
        self.sql = sql


class SchemaChangeError(SchemaManagerError):
    """
    Raised when schema changes were executed and at least one shard failed,
    or the executor reported a whole-run error.

    The message embeds the JSON of the result so the failing statements and
    shards are visible without re-querying.

    Attributes:
        result: The ExecuteResult of the run

    Example:
        ```python
        try:
            await run(controller, executor)
        except SchemaChangeError as e:
            for failure in e.result.failed_shards:
                logger.error(f"{failure.shard}: {failure.err}")
        ```
    """

    def __init__(self, result: "ExecuteResult", keyspace: Optional[str] = None):
        self.result = result
        super().__init__(
            f"schema change failed, ExecuteResult: {result.model_dump_json(indent=2)}",
            keyspace
        )
