"""
Backup Storage Interface

Defines the contract every backup storage backend implements:

- BackupStorage is the factory for backup sessions (list/start/remove).
- BackupHandle is one backup, either read-write (from start_backup) or
  read-only (from list_backups).
- BackupWriter / BackupReader are the per-file streams a handle hands out.

The base classes enforce the parts of the contract that do not depend on the
backend (handle modes, file name validation, single finalization, error
recorder consultation) and leave the storage work to a handful of abstract
hooks. Every blocking call is a coroutine; cancelling the awaiting task is the
cancellation scope, and nothing here keeps a caller's task around.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Set, Union

from shardops_exceptions import UsageError
from ..exceptions import BackupStorageError, HandleModeError, InvalidFileNameError
from ..models.entities import FILE_SIZE_UNKNOWN, HandleMode, StorageParams
from .error_recorder import ErrorRecorder
from .validator import check_mode, validate_file_name

logger = logging.getLogger(__name__)

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


class TaggedLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the storage's observability tags."""

    def process(self, msg, kwargs):
        tags = self.extra.get("tags") or {}
        if tags:
            prefix = " ".join(f"{k}={v}" for k, v in sorted(tags.items()))
            msg = f"[{prefix}] {msg}"
        return msg, kwargs


def build_logger(params: StorageParams, default: logging.Logger) -> LoggerLike:
    """Logger a storage should use for the given params."""
    base = params.logger or default
    if params.tags:
        return TaggedLoggerAdapter(base, {"tags": dict(params.tags)})
    return base


class BackupWriter(ABC):
    """
    Write stream for one file of a read-write backup session.

    Failed writes are recorded in the owning handle's error recorder and then
    re-raised to the writer. If the awaiting task is cancelled mid-write, the
    local file resources are released, the file is recorded as failed and the
    cancellation propagates; bytes already written are only removed by
    abort_backup.

    Example:
        ```python
        async with await handle.add_file("0", FILE_SIZE_UNKNOWN) as writer:
            await writer.write(b"...")
        ```
    """

    def __init__(self, handle: "BackupHandle", filename: str, filesize: int):
        self._handle = handle
        self.filename = filename
        self.filesize = filesize
        self.bytes_written = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> int:
        """
        Append bytes to the file.

        Returns:
            Number of bytes written
        """
        if self._closed:
            raise UsageError(f"write on closed backup file '{self.filename}'")
        try:
            await self._write(bytes(data))
        except asyncio.CancelledError:
            self._abandon(BackupStorageError(
                f"write to '{self.filename}' was cancelled",
                directory=self._handle.directory,
                name=self._handle.name
            ))
            raise
        except Exception as e:
            self._handle.error_recorder.record_error(self.filename, e)
            raise
        self.bytes_written += len(data)
        return len(data)

    async def close(self) -> None:
        """Flush and close the file. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._close()
        except asyncio.CancelledError:
            self._handle.error_recorder.record_error(
                self.filename,
                BackupStorageError(f"close of '{self.filename}' was cancelled")
            )
            self._release()
            raise
        except Exception as e:
            self._handle.error_recorder.record_error(self.filename, e)
            raise
        finally:
            self._handle._writer_done(self)

    def _abandon(self, reason: Optional[BaseException]) -> None:
        """Release local resources without finishing the file."""
        if self._closed:
            return
        self._closed = True
        if reason is not None:
            self._handle.error_recorder.record_error(self.filename, reason)
        try:
            self._release()
        finally:
            self._handle._writer_done(self)

    async def __aenter__(self) -> "BackupWriter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.close()
        elif not self._closed:
            if not isinstance(exc, Exception):
                exc = BackupStorageError(f"writing '{self.filename}' was interrupted")
            self._abandon(exc)

    @abstractmethod
    async def _write(self, data: bytes) -> None:
        """Store the bytes."""

    @abstractmethod
    async def _close(self) -> None:
        """Make the file complete within the session."""

    @abstractmethod
    def _release(self) -> None:
        """Drop local resources (file descriptors, buffers) without completing the file."""


class BackupReader(ABC):
    """
    Read stream for one file of a read-only backup.

    Example:
        ```python
        async with await handle.read_file("MANIFEST") as reader:
            data = await reader.read()
        ```
    """

    # Chunk size used when iterating over a reader.
    CHUNK_SIZE = 1024 * 1024

    def __init__(self, filename: str):
        self.filename = filename
        self._closed = False

    async def read(self, size: int = -1) -> bytes:
        """Read up to size bytes, or everything left when size is negative."""
        if self._closed:
            raise UsageError(f"read on closed backup file '{self.filename}'")
        return await self._read(size)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._close()

    async def __aenter__(self) -> "BackupReader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(self.CHUNK_SIZE)
            if not chunk:
                return
            yield chunk

    @abstractmethod
    async def _read(self, size: int) -> bytes:
        """Backend read."""

    @abstractmethod
    async def _close(self) -> None:
        """Backend close."""


class BackupHandle(ABC):
    """
    One backup, bound to a (directory, name) key and a mode for its whole life.

    Read-write handles come from BackupStorage.start_backup and accept
    add_file, end_backup and abort_backup. Read-only handles come from
    BackupStorage.list_backups and accept read_file. The handle owns an
    ErrorRecorder (``handle.error_recorder``) that concurrent writers report
    failures to; end_backup refuses to commit while it holds errors.

    Callers must close every writer before calling end_backup; the handle
    only logs a warning when they do not.
    """

    def __init__(
        self,
        directory: str,
        name: str,
        mode: HandleMode,
        log: Optional[LoggerLike] = None
    ):
        self._directory = directory
        self._name = name
        self._mode = mode
        self._log = log or logger
        self.error_recorder = ErrorRecorder(directory, name)
        self._finished = False
        self._lock = threading.Lock()
        self._files: Set[str] = set()
        self._open_writers: Set[BackupWriter] = set()

    @property
    def directory(self) -> str:
        """Location of the backup, usually keyspace/shard."""
        return self._directory

    @property
    def name(self) -> str:
        """Name of the backup, usually alias-timestamp."""
        return self._name

    @property
    def mode(self) -> HandleMode:
        return self._mode

    @property
    def finished(self) -> bool:
        """Whether end_backup or abort_backup completed on this handle."""
        return self._finished

    async def add_file(self, filename: str, filesize: int = FILE_SIZE_UNKNOWN) -> BackupWriter:
        """
        Open a new file in this backup session.

        Safe to call concurrently for distinct file names. filesize is only a
        hint and may be FILE_SIZE_UNKNOWN.

        Raises:
            HandleModeError: If the handle is read-only or already finalized
            InvalidFileNameError: If the name is not [A-Za-z0-9-]+ or was already added
        """
        self._check_writable("add_file")
        validate_file_name(filename, self._directory, self._name)
        with self._lock:
            if filename in self._files:
                raise InvalidFileNameError(
                    f"file '{filename}' was already added to this backup",
                    filename=filename,
                    directory=self._directory,
                    name=self._name
                )
            self._files.add(filename)
        try:
            writer = await self._open_writer(filename, filesize)
        except BaseException:
            with self._lock:
                self._files.discard(filename)
            raise
        with self._lock:
            self._open_writers.add(writer)
        self._log.debug(f"Added file '{filename}' to backup {self._directory}/{self._name} (size hint {filesize})")
        return writer

    async def end_backup(self) -> None:
        """
        Commit the session so list_backups sees the backup.

        Raises:
            HandleModeError: If the handle is read-only or already finalized
            BackupSessionError: If any writer recorded a failure; nothing is
                committed and the caller should abort_backup
        """
        self._check_writable("end_backup")
        with self._lock:
            still_open = sorted(w.filename for w in self._open_writers)
        if still_open:
            self._log.warning(
                f"end_backup on {self._directory}/{self._name} with open files: {', '.join(still_open)}"
            )
        session_error = self.error_recorder.error()
        if session_error is not None:
            self._log.error(f"Not committing backup {self._directory}/{self._name}: {session_error}")
            raise session_error
        await self._commit()
        self._finished = True
        self._log.info(f"Backup {self._directory}/{self._name} committed ({len(self._files)} files)")

    async def abort_backup(self) -> None:
        """
        Stop the session and delete everything written so far.

        Safe to call with no files added.

        Raises:
            HandleModeError: If the handle is read-only or already finalized
        """
        self._check_writable("abort_backup")
        with self._lock:
            writers = list(self._open_writers)
        for writer in writers:
            writer._abandon(None)
        await self._discard()
        self._finished = True
        self._log.info(f"Backup {self._directory}/{self._name} aborted")

    async def read_file(self, filename: str) -> BackupReader:
        """
        Open a file of a committed backup for reading.

        Raises:
            HandleModeError: If the handle is read-write
            BackupNotFoundError: If the file does not exist in the backup
        """
        check_mode(self._mode, HandleMode.READ_ONLY, "read_file", self._directory, self._name)
        validate_file_name(filename, self._directory, self._name)
        return await self._open_reader(filename)

    def _check_writable(self, operation: str) -> None:
        check_mode(self._mode, HandleMode.READ_WRITE, operation, self._directory, self._name)
        if self._finished:
            raise HandleModeError(
                f"{operation} called on a backup session that is already finished",
                operation=operation,
                mode=self._mode.value,
                directory=self._directory,
                name=self._name
            )

    def _writer_done(self, writer: BackupWriter) -> None:
        with self._lock:
            self._open_writers.discard(writer)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(directory={self._directory!r}, name={self._name!r}, mode={self._mode.value})"

    @abstractmethod
    async def _open_writer(self, filename: str, filesize: int) -> BackupWriter:
        """Create the backend write stream."""

    @abstractmethod
    async def _commit(self) -> None:
        """Make the session visible atomically."""

    @abstractmethod
    async def _discard(self) -> None:
        """Delete everything the session wrote."""

    @abstractmethod
    async def _open_reader(self, filename: str) -> BackupReader:
        """Create the backend read stream."""


class BackupStorage(ABC):
    """
    Interface to a storage system holding backups.

    Implementations register themselves by name (see core.registry) and are
    selected through configuration. close() releases pooled resources but
    the storage must stay usable afterwards.
    """

    def __init__(self, params: Optional[StorageParams] = None):
        self._params = params or StorageParams()
        self._log = build_logger(self._params, logger)

    @property
    def params(self) -> StorageParams:
        return self._params

    @abstractmethod
    async def list_backups(self, directory: str) -> List[BackupHandle]:
        """
        Return read-only handles for every committed backup in directory,
        sorted ascending by name (oldest first).
        """

    @abstractmethod
    async def start_backup(self, directory: str, name: str) -> BackupHandle:
        """
        Create a new read-write backup.

        Raises:
            BackupAlreadyExistsError: If the key is already taken
        """

    @abstractmethod
    async def remove_backup(self, directory: str, name: str) -> None:
        """
        Delete all data of a backup.

        Raises:
            BackupNotFoundError: If there is no committed backup with this key
        """

    @abstractmethod
    def close(self) -> None:
        """Free pooled resources. The storage remains usable."""

    @abstractmethod
    def with_params(self, params: StorageParams) -> "BackupStorage":
        """Return a shared-nothing copy of this storage that uses params."""
