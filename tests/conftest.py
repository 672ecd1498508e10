import os
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from backup_storage import BackupStorageConfig, FileBackupStorage, MemoryBackupStorage
from schema_manager import Controller, ExecuteResult, Executor


def _dir_size(path: Path) -> int:
    if not path.exists():
        return 0
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())


@pytest.fixture()
def file_storage(tmp_path):
    storage = FileBackupStorage(
        BackupStorageConfig(root_path=str(tmp_path / "backups"), fsync_on_close=False, io_workers=4)
    )
    yield storage
    storage.close()


@pytest.fixture()
def memory_storage():
    return MemoryBackupStorage()


@pytest.fixture(params=["file", "memory"])
def storage(request, tmp_path):
    if request.param == "file":
        storage = FileBackupStorage(
            BackupStorageConfig(root_path=str(tmp_path / "backups"), fsync_on_close=False, io_workers=4)
        )
    else:
        storage = MemoryBackupStorage()
    yield storage
    storage.close()


@pytest.fixture()
def stored_bytes():
    """Bytes a backend holds for a key, committed or in progress."""
    def _stored_bytes(storage, directory: str, name: str) -> int:
        if isinstance(storage, MemoryBackupStorage):
            return storage.store.stored_bytes(directory, name)
        return _dir_size(storage._backup_path(directory, name)) + _dir_size(storage._staging_path(directory, name))
    return _stored_bytes


@pytest.fixture()
def stored_paths():
    """Every path a file backend holds for a key."""
    def _stored_paths(storage, directory: str, name: str) -> List[Path]:
        paths = (storage._backup_path(directory, name), storage._staging_path(directory, name))
        return [p for p in paths if os.path.exists(p)]
    return _stored_paths


class FakeController(Controller):
    """Controller that returns canned statements and records every call."""

    def __init__(
        self,
        sqls: Optional[List[str]] = None,
        keyspace: str = "commerce",
        read_error: Optional[Exception] = None,
        open_error: Optional[Exception] = None,
        hook_errors: Optional[Dict[str, Exception]] = None
    ):
        self.sqls = sqls or []
        self._keyspace = keyspace
        self.read_error = read_error
        self.open_error = open_error
        self.hook_errors = hook_errors or {}
        self.calls: List[str] = []
        self.results: List[ExecuteResult] = []
        self.errors: List[Exception] = []

    def _hook(self, name: str) -> None:
        self.calls.append(name)
        if name in self.hook_errors:
            raise self.hook_errors[name]

    async def open(self) -> None:
        self.calls.append("open")
        if self.open_error:
            raise self.open_error

    async def read(self) -> List[str]:
        self.calls.append("read")
        if self.read_error:
            raise self.read_error
        return list(self.sqls)

    def close(self) -> None:
        self.calls.append("close")

    @property
    def keyspace(self) -> str:
        return self._keyspace

    async def on_read_success(self) -> None:
        self._hook("on_read_success")

    async def on_read_fail(self, err: Exception) -> None:
        self.errors.append(err)
        self._hook("on_read_fail")

    async def on_validation_success(self) -> None:
        self._hook("on_validation_success")

    async def on_validation_fail(self, err: Exception) -> None:
        self.errors.append(err)
        self._hook("on_validation_fail")

    async def on_executor_complete(self, result: ExecuteResult) -> None:
        self.results.append(result)
        self._hook("on_executor_complete")


class FakeExecutor(Executor):
    """Executor that returns a canned result and records every call."""

    def __init__(
        self,
        result: Optional[ExecuteResult] = None,
        validate_error: Optional[Exception] = None,
        open_error: Optional[Exception] = None
    ):
        self.result = result
        self.validate_error = validate_error
        self.open_error = open_error
        self.calls: List[str] = []
        self.keyspace: Optional[str] = None

    async def open(self, keyspace: str) -> None:
        self.calls.append("open")
        self.keyspace = keyspace
        if self.open_error:
            raise self.open_error

    async def validate(self, sqls: List[str]) -> None:
        self.calls.append("validate")
        if self.validate_error:
            raise self.validate_error

    async def execute(self, sqls: List[str]) -> ExecuteResult:
        self.calls.append("execute")
        if self.result is not None:
            return self.result
        return ExecuteResult(sqls=list(sqls))

    def close(self) -> None:
        self.calls.append("close")


@pytest.fixture()
def make_controller():
    return FakeController


@pytest.fixture()
def make_executor():
    return FakeExecutor
