"""
File System Backup Storage

Implements backup storage on a local (or mounted network) file system.

Directory structure:
    root/
    ├── keyspace/shard/                        # backup directory
    │   └── .backups/
    │       ├── zone1-0000000100-1700000000/   # committed backup
    │       │   ├── MANIFEST
    │       │   ├── 0
    │       │   └── 1
    │       └── .zone1-0000000100-1700000500.inprogress/   # open session

Backups of a directory live under its hidden BACKUPS_DIR, apart from any
nested backup directories, so "ks" and "ks/0" never see each other's entries.
A session writes into a hidden staging directory and end_backup renames it
into place, so a backup appears in list_backups all at once or not at all.
"""

import asyncio
import dataclasses
import functools
import logging
import os
import shutil
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, TypeVar

from ..config import BackupStorageConfig
from ..exceptions import BackupAlreadyExistsError, BackupNotFoundError
from ..models.entities import HandleMode, StorageParams
from .interface import BackupHandle, BackupReader, BackupStorage, BackupWriter
from .validator import validate_backup_key, validate_directory

logger = logging.getLogger(__name__)

T = TypeVar('T')

BACKUPS_DIR = ".backups"
STAGING_SUFFIX = ".inprogress"


def staging_dir_name(name: str) -> str:
    """Name of the hidden directory holding an open session."""
    return f".{name}{STAGING_SUFFIX}"


def _fsync_dir(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _close_if_opened(future: Future) -> None:
    if not future.cancelled() and future.exception() is None:
        future.result().close()


class FileBackupWriter(BackupWriter):
    """Writes one file of a session into the staging directory."""

    def __init__(
        self,
        handle: "FileBackupHandle",
        filename: str,
        filesize: int,
        file: BinaryIO,
        storage: "FileBackupStorage"
    ):
        super().__init__(handle, filename, filesize)
        self._file = file
        self._storage = storage
        self._pending: Optional[Future] = None

    async def _write(self, data: bytes) -> None:
        self._pending = self._storage._submit(self._file.write, data)
        await asyncio.wrap_future(self._pending)

    async def _close(self) -> None:
        self._pending = self._storage._submit(self._flush_and_close)
        await asyncio.wrap_future(self._pending)

    def _flush_and_close(self) -> None:
        try:
            self._file.flush()
            if self._storage.config.fsync_on_close:
                os.fsync(self._file.fileno())
        finally:
            self._file.close()

    def _release(self) -> None:
        # An I/O thread may still be using the file; close it once that call returns.
        pending = self._pending
        if pending is not None and not pending.done():
            pending.add_done_callback(lambda _: self._file.close())
        else:
            self._file.close()


class FileBackupReader(BackupReader):
    """Reads one file of a committed backup."""

    def __init__(self, filename: str, file: BinaryIO, storage: "FileBackupStorage"):
        super().__init__(filename)
        self._file = file
        self._storage = storage
        self.CHUNK_SIZE = storage.config.read_chunk_size_bytes

    async def _read(self, size: int) -> bytes:
        return await self._storage._run(self._file.read, size)

    async def _close(self) -> None:
        self._file.close()


class FileBackupHandle(BackupHandle):
    """Backup handle for FileBackupStorage."""

    def __init__(
        self,
        storage: "FileBackupStorage",
        directory: str,
        name: str,
        mode: HandleMode
    ):
        super().__init__(directory, name, mode, storage._log)
        self._storage = storage
        self._backup_dir = storage._backup_path(directory, name)
        self._staging_dir = storage._staging_path(directory, name)

    async def _open_writer(self, filename: str, filesize: int) -> BackupWriter:
        path = self._staging_dir / filename
        future = self._storage._submit(open, path, "xb")
        try:
            file = await asyncio.wrap_future(future)
        except asyncio.CancelledError:
            future.add_done_callback(_close_if_opened)
            raise
        return FileBackupWriter(self, filename, filesize, file, self._storage)

    async def _commit(self) -> None:
        await self._storage._run(self._commit_sync)

    def _commit_sync(self) -> None:
        if self._storage.config.fsync_on_close:
            _fsync_dir(self._staging_dir)
        with self._storage._keys_lock:
            # rename() would replace an empty committed backup without complaint.
            if self._backup_dir.exists():
                raise BackupAlreadyExistsError(
                    "backup was committed by another session", directory=self.directory,
                    name=self.name, context={"path": str(self._backup_dir)}
                )
            os.rename(self._staging_dir, self._backup_dir)
        if self._storage.config.fsync_on_close:
            _fsync_dir(self._backup_dir.parent)

    async def _discard(self) -> None:
        await self._storage._run(self._discard_sync)

    def _discard_sync(self) -> None:
        if self._staging_dir.exists():
            shutil.rmtree(self._staging_dir)

    async def _open_reader(self, filename: str) -> BackupReader:
        path = self._backup_dir / filename
        future = self._storage._submit(open, path, "rb")
        try:
            file = await asyncio.wrap_future(future)
        except asyncio.CancelledError:
            future.add_done_callback(_close_if_opened)
            raise
        except FileNotFoundError:
            raise BackupNotFoundError(
                f"file '{filename}' not found in backup",
                directory=self.directory,
                name=self.name,
                filename=filename
            ) from None
        return FileBackupReader(filename, file, self._storage)


class FileBackupStorage(BackupStorage):
    """
    Backup storage on a local file system.

    Blocking file operations run on a ThreadPoolExecutor owned by the storage.
    close() shuts the pool down; the next operation starts a new one, so the
    storage stays usable.

    Example:
        ```python
        storage = FileBackupStorage(BackupStorageConfig(root_path="/mnt/backups"))

        handle = await storage.start_backup("commerce/0", "zone1-100-20240115.120000")
        async with await handle.add_file("0", FILE_SIZE_UNKNOWN) as writer:
            await writer.write(data)
        await handle.end_backup()

        backups = await storage.list_backups("commerce/0")
        ```
    """

    def __init__(
        self,
        config: Optional[BackupStorageConfig] = None,
        params: Optional[StorageParams] = None
    ):
        super().__init__(params)
        self.config = config or BackupStorageConfig()
        self.root_path = self.config.get_root_path()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        # Guards the exists-check and mkdir/rename of a key; shared with with_params copies.
        self._keys_lock = threading.Lock()

        self._log.info(f"FileBackupStorage initialized with root: {self.root_path}")

    def _backups_path(self, directory: str) -> Path:
        return self.root_path / directory / BACKUPS_DIR

    def _backup_path(self, directory: str, name: str) -> Path:
        return self._backups_path(directory) / name

    def _staging_path(self, directory: str, name: str) -> Path:
        return self._backups_path(directory) / staging_dir_name(name)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.io_workers,
                    thread_name_prefix=f"FileBackupStorage-{id(self)}"
                )
                self._log.debug(f"Created I/O pool with {self.config.io_workers} workers")
            return self._executor

    def _submit(self, func: Callable[..., T], *args) -> "Future[T]":
        return self._get_executor().submit(functools.partial(func, *args))

    async def _run(self, func: Callable[..., T], *args) -> T:
        return await asyncio.wrap_future(self._submit(func, *args))

    async def list_backups(self, directory: str) -> List[BackupHandle]:
        validate_directory(directory)
        names = await self._run(self._list_names_sync, directory)
        self._log.debug(f"Found {len(names)} backups in {directory}")
        return [FileBackupHandle(self, directory, name, HandleMode.READ_ONLY) for name in names]

    def _list_names_sync(self, directory: str) -> List[str]:
        path = self._backups_path(directory)
        if not path.is_dir():
            return []
        return sorted(
            entry.name for entry in path.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    async def start_backup(self, directory: str, name: str) -> BackupHandle:
        validate_backup_key(directory, name)
        await self._run(self._start_sync, directory, name)
        self._log.info(f"Started backup {directory}/{name}")
        return FileBackupHandle(self, directory, name, HandleMode.READ_WRITE)

    def _start_sync(self, directory: str, name: str) -> None:
        backup_dir = self._backup_path(directory, name)
        staging_dir = self._staging_path(directory, name)
        with self._keys_lock:
            if backup_dir.exists():
                raise BackupAlreadyExistsError(
                    "backup already exists", directory=directory, name=name,
                    context={"path": str(backup_dir)}
                )
            staging_dir.parent.mkdir(parents=True, exist_ok=True)
            try:
                staging_dir.mkdir()
            except FileExistsError:
                raise BackupAlreadyExistsError(
                    "backup is already in progress", directory=directory, name=name,
                    context={"path": str(staging_dir)}
                ) from None

    async def remove_backup(self, directory: str, name: str) -> None:
        validate_backup_key(directory, name)
        await self._run(self._remove_sync, directory, name)
        self._log.info(f"Removed backup {directory}/{name}")

    def _remove_sync(self, directory: str, name: str) -> None:
        backup_dir = self._backup_path(directory, name)
        staging_dir = self._staging_path(directory, name)
        with self._keys_lock:
            if not backup_dir.exists() and not staging_dir.exists():
                raise BackupNotFoundError(
                    "backup not found", directory=directory, name=name,
                    context={"path": str(backup_dir)}
                )
            for path in (backup_dir, staging_dir):
                if path.exists():
                    shutil.rmtree(path)

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
            self._log.debug("Shut down I/O pool")

    def with_params(self, params: StorageParams) -> "FileBackupStorage":
        storage = FileBackupStorage(dataclasses.replace(self.config), params)
        storage._keys_lock = self._keys_lock
        return storage
