"""
Backup Storage Exceptions

Defines a granular exception hierarchy for backup storage operations,
providing specific exception types for different failure scenarios to enable
targeted error handling: usage errors are caller bugs and fail fast, while
session errors aggregate failures recorded by concurrent writers.
"""

from typing import Optional, Dict, Any, List, Tuple

from shardops_exceptions import ShardOpsError, UsageError


class BackupStorageError(ShardOpsError):
    """
    Base exception for all backup storage operations.

    Provides common context attributes that are useful for debugging and
    error reporting.

    Attributes:
        message: Human-readable error message
        directory: Backup directory involved (if applicable)
        name: Backup name involved (if applicable)
        context: Additional context information as key-value pairs

    Example:
        ```python
        try:
            handle = await storage.start_backup("commerce/0", "zone1-100-1700000000")
        except BackupStorageError as e:
            logger.error(f"Backup error for {e.directory}/{e.name}: {e.message}")
        ```
    """

    def __init__(
        self,
        message: str,
        directory: Optional[str] = None,
        name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.directory = directory
        self.name = name
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.directory:
            parts.append(f"Directory: {self.directory}")
        if self.name:
            parts.append(f"Backup: {self.name}")
        if self.context:
            parts.append(f"Context: {self.context}")
        return " | ".join(parts)


class BackupAlreadyExistsError(BackupStorageError):
    """
    Backup name conflict - backup already exists.

    Raised by start_backup when the (directory, name) key is already taken,
    either by a committed backup or by a session still in progress.
    """
    pass


class BackupNotFoundError(BackupStorageError):
    """
    Backup or backup file does not exist.

    Additional Attributes:
        filename: File inside the backup that was not found (if applicable)
    """

    def __init__(
        self,
        message: str,
        directory: Optional[str] = None,
        name: Optional[str] = None,
        filename: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, directory, name, context)
        self.filename = filename


class InvalidFileNameError(BackupStorageError, UsageError):
    """
    File name outside the allowed character class.

    Raised by add_file before any byte is written when the name contains
    anything other than ASCII letters, digits and hyphens.
    """

    def __init__(
        self,
        message: str,
        filename: Optional[str] = None,
        directory: Optional[str] = None,
        name: Optional[str] = None
    ):
        super().__init__(message, directory, name)
        self.filename = filename


class HandleModeError(BackupStorageError, UsageError):
    """
    Operation invoked against a handle of the wrong mode.

    Write operations (add_file, end_backup, abort_backup) are only valid on
    read-write handles; read_file is only valid on read-only handles. Also
    raised when a session that was already finalized is used again.

    Additional Attributes:
        operation: The operation that was attempted
        mode: Mode of the handle it was attempted on
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        mode: Optional[str] = None,
        directory: Optional[str] = None,
        name: Optional[str] = None
    ):
        super().__init__(message, directory, name)
        self.operation = operation
        self.mode = mode


class BackupSessionError(BackupStorageError):
    """
    One or more files of a backup session failed.

    Built from the handle's error recorder. end_backup raises it instead of
    committing when any writer recorded a failure.

    Additional Attributes:
        file_errors: List of (filename, exception) pairs in recording order
    """

    def __init__(
        self,
        message: str,
        file_errors: Optional[List[Tuple[str, BaseException]]] = None,
        directory: Optional[str] = None,
        name: Optional[str] = None
    ):
        super().__init__(message, directory, name)
        self.file_errors = file_errors or []

    @property
    def failed_files(self) -> List[str]:
        """Names of the files that failed, without duplicates."""
        return list(dict.fromkeys(filename for filename, _ in self.file_errors))

    def __str__(self) -> str:
        base = super().__str__()
        if not self.file_errors:
            return base
        details = "; ".join(f"{filename}: {err}" for filename, err in self.file_errors)
        return f"{base} | Files: {details}"


class BackupCorruptedError(BackupStorageError):
    """
    Restored data failed checksum verification.

    Additional Attributes:
        filename: File whose contents did not match
        expected_checksum: Checksum stored in the manifest
        actual_checksum: Checksum computed from the restored bytes
    """

    def __init__(
        self,
        message: str,
        directory: Optional[str] = None,
        name: Optional[str] = None,
        filename: Optional[str] = None,
        expected_checksum: Optional[str] = None,
        actual_checksum: Optional[str] = None
    ):
        super().__init__(message, directory, name)
        self.filename = filename
        self.expected_checksum = expected_checksum
        self.actual_checksum = actual_checksum
