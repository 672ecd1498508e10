"""
Backup Storage Configuration

Centralized configuration for the built-in backup storage backends and the
backup manager, providing a single source of truth for tunable parameters
related to storage layout, I/O, concurrency and retention.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING
from pathlib import Path
import logging

from .models.entities import ChecksumAlgorithm

if TYPE_CHECKING:
    from config.settings import BackupStorageSettings

logger = logging.getLogger(__name__)


@dataclass
class BackupStorageConfig:
    """
    Configuration for backup storage operations.

    Storage Settings:
        root_path: Root directory of the file backend
        fsync_on_close: fsync every file (and the backup directory) before
            a session is committed

    Performance Settings:
        io_workers: Threads in the file backend's I/O pool (default: 8)
        read_chunk_size_kb: Chunk size used when streaming files back (default: 1024)
        max_concurrent_files: Files the backup manager writes at once (default: 4)

    Reliability Settings:
        checksum_algorithm: Algorithm used for manifest checksums

    Retention Settings:
        min_backups_to_keep: Minimum backups kept by prune_backups regardless
            of the requested count (default: 1)

    Example:
        ```python
        config = BackupStorageConfig(
            root_path="/mnt/backups",
            max_concurrent_files=8
        )
        storage = FileBackupStorage(config)
        ```
    """

    # Storage Settings
    root_path: str = "./backups"
    fsync_on_close: bool = True

    # Performance Settings
    io_workers: int = 8
    read_chunk_size_kb: int = 1024
    max_concurrent_files: int = 4

    # Reliability Settings
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256

    # Retention Settings
    min_backups_to_keep: int = 1

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.checksum_algorithm, str):
            self.checksum_algorithm = ChecksumAlgorithm(self.checksum_algorithm)
        self.validate()

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Raises:
            ValueError: If any configuration parameter is invalid
        """
        if not self.root_path:
            raise ValueError("root_path must be set")

        if self.io_workers <= 0:
            raise ValueError("io_workers must be positive")
        if self.io_workers > 64:
            logger.warning(f"Large I/O pool ({self.io_workers} threads) may strain resources")

        if self.read_chunk_size_kb <= 0:
            raise ValueError("read_chunk_size_kb must be positive")

        if self.max_concurrent_files <= 0:
            raise ValueError("max_concurrent_files must be positive")
        if self.max_concurrent_files > self.io_workers:
            logger.warning(
                f"max_concurrent_files ({self.max_concurrent_files}) exceeds "
                f"io_workers ({self.io_workers}); extra files will queue for I/O threads"
            )

        if self.min_backups_to_keep < 0:
            raise ValueError("min_backups_to_keep cannot be negative")

    @classmethod
    def from_settings(cls, settings: 'BackupStorageSettings') -> 'BackupStorageConfig':
        """Create configuration from the backup section of ShardOpsSettings."""
        return cls(
            root_path=settings.file_root,
            fsync_on_close=settings.fsync_on_close,
            max_concurrent_files=settings.max_concurrent_files,
            min_backups_to_keep=settings.min_backups_to_keep
        )

    def get_root_path(self) -> Path:
        return Path(self.root_path)

    @property
    def read_chunk_size_bytes(self) -> int:
        """Get read chunk size in bytes."""
        return self.read_chunk_size_kb * 1024

    def __repr__(self) -> str:
        return (
            f"BackupStorageConfig("
            f"root={self.root_path}, "
            f"fsync={'enabled' if self.fsync_on_close else 'disabled'}, "
            f"io_workers={self.io_workers}, "
            f"max_concurrent_files={self.max_concurrent_files}"
            f")"
        )
