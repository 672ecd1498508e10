"""
Backup Storage Validator

Validation helpers shared by every backend: file names, backup keys, and
handle mode checks.
"""

import logging
import re

from pydantic import ValidationError

from ..exceptions import BackupStorageError, HandleModeError, InvalidFileNameError
from ..models.entities import BackupKey, HandleMode

logger = logging.getLogger(__name__)

# File names inside a backup: ASCII letters, digits and hyphens only.
FILE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")


def validate_file_name(filename: str, directory: str = None, name: str = None) -> str:
    """
    Check that a file name only uses the allowed character class.

    Args:
        filename: Name passed to add_file or read_file
        directory: Backup directory, for error context
        name: Backup name, for error context

    Returns:
        The file name, unchanged

    Raises:
        InvalidFileNameError: If the name is empty or has any other character
    """
    if not isinstance(filename, str) or not FILE_NAME_PATTERN.fullmatch(filename):
        raise InvalidFileNameError(
            f"invalid backup file name {filename!r}: only [A-Za-z0-9-] is allowed",
            filename=filename if isinstance(filename, str) else None,
            directory=directory,
            name=name
        )
    return filename


def validate_backup_key(directory: str, name: str) -> BackupKey:
    """
    Build a BackupKey, turning validation failures into storage errors.

    Raises:
        BackupStorageError: If directory or name is not usable as a key
    """
    try:
        return BackupKey(directory=directory, name=name)
    except ValidationError as e:
        raise BackupStorageError(
            f"invalid backup key: {e.errors()[0]['msg']}",
            directory=directory,
            name=name
        ) from e


def validate_directory(directory: str) -> str:
    """Validate a directory on its own (used by list_backups)."""
    return validate_backup_key(directory, "probe").directory


def check_mode(
    mode: HandleMode,
    required: HandleMode,
    operation: str,
    directory: str = None,
    name: str = None
) -> None:
    """
    Fail fast when an operation is invoked on a handle of the wrong mode.

    Raises:
        HandleModeError: If mode is not the required one
    """
    if mode != required:
        raise HandleModeError(
            f"{operation} is only allowed on {required.value} backup handles",
            operation=operation,
            mode=mode.value,
            directory=directory,
            name=name
        )

