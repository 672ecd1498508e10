"""
Schema Change Controllers

Built-in Controller implementations:

- PlainController takes the statements as a string.
- LocalController picks up .sql files from a directory tree and files them
  under complete/ or error/ depending on how the change went.
"""

import asyncio
import functools
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, TypeVar, Union

from shardops_exceptions import UsageError
from .interfaces import Controller
from .models import ExecuteResult

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Keys of the parameters passed to controller factories.
SCHEMA_CHANGE_DIR_NAME = "schema_change_dir"
SCHEMA_CHANGE_USER = "schema_change_user"
SQL_TEXT = "sql"
KEYSPACE = "keyspace"


def split_sql(sql_text: str) -> List[str]:
    """
    Split SQL text into statements on ';', dropping empty ones.

    Quoting is not interpreted; statements must not contain a literal ';'.
    """
    return [statement.strip() for statement in sql_text.split(";") if statement.strip()]


class PlainController(Controller):
    """
    Controller for statements given directly as text.

    Example:
        ```python
        controller = PlainController(
            "ALTER TABLE customer ADD COLUMN email VARCHAR(128); CREATE TABLE t (id INT)",
            keyspace="commerce"
        )
        result = await run(controller, executor)
        ```
    """

    def __init__(self, sql_text: str, keyspace: str):
        self._sqls = split_sql(sql_text)
        self._keyspace = keyspace

    @classmethod
    def from_params(cls, params: Dict[str, str]) -> "PlainController":
        try:
            return cls(params[SQL_TEXT], params[KEYSPACE])
        except KeyError as e:
            raise UsageError(f"missing plain controller parameter {e}") from None

    async def open(self) -> None:
        pass

    async def read(self) -> List[str]:
        return list(self._sqls)

    def close(self) -> None:
        pass

    @property
    def keyspace(self) -> str:
        return self._keyspace

    async def on_read_success(self) -> None:
        pass

    async def on_read_fail(self, err: Exception) -> None:
        logger.error(f"Failed to read schema changes for keyspace {self._keyspace}: {err}")

    async def on_validation_success(self) -> None:
        pass

    async def on_validation_fail(self, err: Exception) -> None:
        logger.error(f"Schema changes for keyspace {self._keyspace} failed validation: {err}")

    async def on_executor_complete(self, result: ExecuteResult) -> None:
        logger.info(f"Schema change on keyspace {self._keyspace} finished: {result.status.value}")


class LocalController(Controller):
    """
    Controller that watches a local directory for schema change files.

    Layout:
        schema_change_dir/
        └── <keyspace>/
            ├── input/      # pending *.sql files, picked in name order
            ├── complete/   # applied changes
            ├── error/      # changes that failed to read, validate or apply
            └── log/        # one log per processed file

    open() selects the first keyspace (by name) with a pending file and the
    first file in it. The hooks move that file to complete/ or error/ and
    write a log entry.

    Example:
        ```python
        controller = LocalController("/var/schema_changes", user="alice")
        await run(controller, ShardedExecutor(client))
        ```
    """

    INPUT_DIR = "input"
    COMPLETE_DIR = "complete"
    ERROR_DIR = "error"
    LOG_DIR = "log"

    def __init__(self, schema_change_dir: Union[str, Path], user: str = ""):
        """
        Args:
            schema_change_dir: Root directory holding one sub-directory per keyspace
            user: Submitter recorded in the log entries
        """
        self.schema_change_dir = Path(schema_change_dir)
        self.user = user
        self._keyspace = ""
        self._sql_path: Optional[Path] = None

    @classmethod
    def from_params(cls, params: Dict[str, str]) -> "LocalController":
        schema_change_dir = params.get(SCHEMA_CHANGE_DIR_NAME)
        if not schema_change_dir:
            raise UsageError(f"local controller needs the '{SCHEMA_CHANGE_DIR_NAME}' parameter")
        return cls(schema_change_dir, params.get(SCHEMA_CHANGE_USER, ""))

    async def _run(self, func: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    @property
    def sql_path(self) -> Optional[Path]:
        """The change file being processed, if any."""
        return self._sql_path

    async def open(self) -> None:
        self._keyspace, self._sql_path = await self._run(self._find_pending)
        if self._sql_path is not None:
            logger.info(f"Picked schema change {self._sql_path.name} for keyspace {self._keyspace}")

    def _find_pending(self):
        if not self.schema_change_dir.is_dir():
            raise FileNotFoundError(f"schema change directory does not exist: {self.schema_change_dir}")
        for keyspace_dir in sorted(self.schema_change_dir.iterdir()):
            input_dir = keyspace_dir / self.INPUT_DIR
            if not input_dir.is_dir():
                continue
            pending = sorted(p for p in input_dir.iterdir() if p.is_file() and p.suffix == ".sql")
            if pending:
                return keyspace_dir.name, pending[0]
        return "", None

    async def read(self) -> List[str]:
        if self._sql_path is None:
            return []
        text = await self._run(self._sql_path.read_text, "utf-8")
        return split_sql(text)

    def close(self) -> None:
        self._keyspace = ""
        self._sql_path = None

    @property
    def keyspace(self) -> str:
        return self._keyspace

    async def on_read_success(self) -> None:
        pass

    async def on_read_fail(self, err: Exception) -> None:
        await self._finish(self.ERROR_DIR, f"read failed: {err}")

    async def on_validation_success(self) -> None:
        pass

    async def on_validation_fail(self, err: Exception) -> None:
        await self._finish(self.ERROR_DIR, f"validation failed: {err}")

    async def on_executor_complete(self, result: ExecuteResult) -> None:
        target = self.ERROR_DIR if result.failed else self.COMPLETE_DIR
        await self._finish(target, result.model_dump_json(indent=2))

    async def _finish(self, target: str, message: str) -> None:
        if self._sql_path is None:
            return
        await self._run(self._move_and_log, self._sql_path, target, message)
        logger.info(f"Moved schema change {self._sql_path.name} of keyspace {self._keyspace} to {target}/")

    def _move_and_log(self, sql_path: Path, target: str, message: str) -> None:
        keyspace_dir = sql_path.parent.parent
        target_dir = keyspace_dir / target
        log_dir = keyspace_dir / self.LOG_DIR
        target_dir.mkdir(exist_ok=True)
        log_dir.mkdir(exist_ok=True)

        shutil.move(str(sql_path), str(target_dir / sql_path.name))

        log_path = log_dir / f"{sql_path.stem}.log"
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(f"[{datetime.now().isoformat()}] user={self.user or '-'} status={target}{os.linesep}")
            f.write(f"{message}{os.linesep}")
