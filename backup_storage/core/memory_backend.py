"""
In-Memory Backup Storage

Keeps backups in process memory. Used by tests, dry runs, and tools that
want the full session semantics without touching a disk.
"""

import asyncio
import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..exceptions import BackupAlreadyExistsError, BackupNotFoundError
from ..models.entities import HandleMode, StorageParams
from .interface import BackupHandle, BackupReader, BackupStorage, BackupWriter
from .validator import validate_backup_key, validate_directory

logger = logging.getLogger(__name__)

Key = Tuple[str, str]


class MemoryStore:
    """
    The "disk" of MemoryBackupStorage.

    Several storage objects may share one store, the same way several
    FileBackupStorage objects share a file system.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.committed: Dict[Key, Dict[str, bytes]] = {}
        self.in_progress: Dict[Key, Dict[str, bytes]] = {}

    def stored_bytes(self, directory: str, name: str) -> int:
        """Bytes held for a key, committed or in progress."""
        key = (directory, name)
        with self.lock:
            files = list(self.committed.get(key, {}).values())
            files += list(self.in_progress.get(key, {}).values())
        return sum(len(data) for data in files)

    def has_key(self, directory: str, name: str) -> bool:
        key = (directory, name)
        with self.lock:
            return key in self.committed or key in self.in_progress


class MemoryBackupWriter(BackupWriter):
    """Buffers a file in memory and hands it to the session on close."""

    def __init__(self, handle: "MemoryBackupHandle", filename: str, filesize: int):
        super().__init__(handle, filename, filesize)
        self._buffer = bytearray()

    async def _write(self, data: bytes) -> None:
        # Give other writers (and cancellation) a chance between chunks.
        await asyncio.sleep(0)
        self._buffer.extend(data)

    async def _close(self) -> None:
        self._handle._store_file(self.filename, bytes(self._buffer))
        self._buffer = bytearray()

    def _release(self) -> None:
        self._buffer = bytearray()


class MemoryBackupReader(BackupReader):

    def __init__(self, filename: str, data: bytes):
        super().__init__(filename)
        self._data = data
        self._offset = 0

    async def _read(self, size: int) -> bytes:
        await asyncio.sleep(0)
        if size is None or size < 0:
            end = len(self._data)
        else:
            end = min(self._offset + size, len(self._data))
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    async def _close(self) -> None:
        self._data = b""


class MemoryBackupHandle(BackupHandle):
    """Backup handle for MemoryBackupStorage."""

    def __init__(self, storage: "MemoryBackupStorage", directory: str, name: str, mode: HandleMode):
        super().__init__(directory, name, mode, storage._log)
        self._store = storage.store
        self._key = (directory, name)

    def _store_file(self, filename: str, data: bytes) -> None:
        with self._store.lock:
            session = self._store.in_progress.get(self._key)
            if session is not None:
                session[filename] = data

    async def _open_writer(self, filename: str, filesize: int) -> BackupWriter:
        return MemoryBackupWriter(self, filename, filesize)

    async def _commit(self) -> None:
        with self._store.lock:
            session = self._store.in_progress.pop(self._key, None)
            if session is None:
                raise BackupNotFoundError(
                    "backup session no longer exists", directory=self.directory, name=self.name
                )
            self._store.committed[self._key] = session

    async def _discard(self) -> None:
        with self._store.lock:
            self._store.in_progress.pop(self._key, None)

    async def _open_reader(self, filename: str) -> BackupReader:
        with self._store.lock:
            files = self._store.committed.get(self._key)
            data = files.get(filename) if files is not None else None
        if data is None:
            raise BackupNotFoundError(
                f"file '{filename}' not found in backup",
                directory=self.directory,
                name=self.name,
                filename=filename
            )
        return MemoryBackupReader(filename, data)


class MemoryBackupStorage(BackupStorage):
    """
    Backup storage held in a MemoryStore.

    with_params returns a new storage object over the same store; the store
    plays the role of the shared backend, like a file system does for
    FileBackupStorage.

    Example:
        ```python
        storage = MemoryBackupStorage()
        handle = await storage.start_backup("commerce/0", "zone1-100-1700000000")
        await handle.end_backup()
        assert [h.name for h in await storage.list_backups("commerce/0")] == ["zone1-100-1700000000"]
        ```
    """

    def __init__(self, store: Optional[MemoryStore] = None, params: Optional[StorageParams] = None):
        super().__init__(params)
        self.store = store or MemoryStore()

    async def list_backups(self, directory: str) -> List[BackupHandle]:
        validate_directory(directory)
        with self.store.lock:
            names = sorted(name for (d, name) in self.store.committed if d == directory)
        return [MemoryBackupHandle(self, directory, name, HandleMode.READ_ONLY) for name in names]

    async def start_backup(self, directory: str, name: str) -> BackupHandle:
        validate_backup_key(directory, name)
        key = (directory, name)
        with self.store.lock:
            if key in self.store.committed:
                raise BackupAlreadyExistsError("backup already exists", directory=directory, name=name)
            if key in self.store.in_progress:
                raise BackupAlreadyExistsError("backup is already in progress", directory=directory, name=name)
            self.store.in_progress[key] = {}
        self._log.info(f"Started backup {directory}/{name}")
        return MemoryBackupHandle(self, directory, name, HandleMode.READ_WRITE)

    async def remove_backup(self, directory: str, name: str) -> None:
        validate_backup_key(directory, name)
        key = (directory, name)
        with self.store.lock:
            committed = self.store.committed.pop(key, None)
            in_progress = self.store.in_progress.pop(key, None)
        if committed is None and in_progress is None:
            raise BackupNotFoundError("backup not found", directory=directory, name=name)
        self._log.info(f"Removed backup {directory}/{name}")

    def close(self) -> None:
        # Nothing pooled.
        pass

    def with_params(self, params: StorageParams) -> "MemoryBackupStorage":
        return MemoryBackupStorage(self.store, params)
