"""
Backup Storage Entities

Defines data models for backup storage sessions: handle modes, backup keys,
per-storage parameters, and the manifest written by the backup manager.

These models use Pydantic for validation and provide a type-safe interface
for backup operations.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Special value for add_file indicating that the final size is not known
# ahead of time (for example when the file is produced by a stream).
FILE_SIZE_UNKNOWN = -1


class HandleMode(str, Enum):
    """
    Mode of a backup handle, fixed for the handle's whole life.

    Modes:
        READ_WRITE: Created by start_backup; add_file/end_backup/abort_backup allowed
        READ_ONLY: Created by list_backups; only read_file allowed
    """
    READ_WRITE = "READ_WRITE"
    READ_ONLY = "READ_ONLY"


class ChecksumAlgorithm(str, Enum):
    """
    Supported checksum algorithms for backup integrity verification.

    Algorithms:
        SHA256: SHA-256 hash (recommended)
        MD5: MD5 hash (faster, less secure)
        BLAKE2B: BLAKE2b hash (fast and secure)
    """
    SHA256 = "SHA256"
    MD5 = "MD5"
    BLAKE2B = "BLAKE2B"


class BackupKey(BaseModel):
    """
    Identifies one backup.

    Both parts are supplied by the caller and never generated here. By
    convention directory is "keyspace/shard" and name is
    "<tablet-alias>-<timestamp>", so sorting names yields oldest first.

    Example:
        ```python
        key = BackupKey(directory="commerce/-80", name="zone1-0000000100-20240115.120000")
        ```
    """
    directory: str = Field(..., min_length=1, description="Backup directory, usually keyspace/shard")
    name: str = Field(..., min_length=1, description="Backup name, usually alias-timestamp")

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Names are a single path component."""
        if "/" in v or v in (".", "..") or v.startswith("."):
            raise ValueError(f"invalid backup name: {v!r}")
        return v

    @field_validator("directory")
    @classmethod
    def validate_directory(cls, v):
        """Segments are non-empty and never hidden, which keeps keys below the storage root."""
        """Directories are relative, may not climb out of the storage root, and have no hidden segments."""
        parts = v.split("/")
        if v.startswith("/") or any(part == "" or part.startswith(".") for part in parts):
            raise ValueError(f"invalid backup directory: {v!r}")
        return v

    def __str__(self) -> str:
        return f"{self.directory}/{self.name}"


class StorageParams(BaseModel):
    """
    Cross-cutting parameters applied to a storage object by with_params.

    Attributes:
        logger: Logger (or LoggerAdapter) the storage should log through
        tags: Observability tags attached to every log record

    Example:
        ```python
        params = StorageParams(tags={"keyspace": "commerce", "shard": "-80"})
        tagged = storage.with_params(params)
        ```
    """
    logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None
    tags: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(arbitrary_types_allowed=True)


class ManifestFile(BaseModel):
    """
    One source file stored in a backup.

    Attributes:
        path: Path of the file relative to the backed-up directory
        size: Size of the file in bytes
        checksum: Hex digest of the file contents
    """
    path: str
    size: int = Field(default=0, ge=0)
    checksum: str = ""


class BackupManifest(BaseModel):
    """
    Description of a complete backup, stored in the backup as MANIFEST.

    Backup file names are the decimal index of the entry in ``files``.

    Attributes:
        directory: Backup directory
        name: Backup name
        created_at: When the backup session was started
        finished_at: When all files were written
        checksum_algorithm: Algorithm used for file checksums
        files: Files in backup order
    """
    directory: str
    name: str
    created_at: datetime
    finished_at: Optional[datetime] = None
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256
    files: List[ManifestFile] = Field(default_factory=list)

    @property
    def total_size(self) -> int:
        """Total size of all backed up files in bytes."""
        return sum(f.size for f in self.files)

    @property
    def file_count(self) -> int:
        return len(self.files)
