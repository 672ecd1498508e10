"""
Backup Storage Module

Pluggable storage for database backups with a session-based lifecycle.

Features:
- Read-write backup sessions committed atomically by end_backup
- Concurrent per-file writers with aggregated error reporting
- File system and in-memory backends, selected by name from configuration
- Backup manager with manifests, checksum-verified restore and pruning

Typical usage:

    from backup_storage import (
        BackupManager,
        get_backup_storage,
        register_default_backends,
        FILE_SIZE_UNKNOWN
    )

    register_default_backends()
    storage = get_backup_storage()

    handle = await storage.start_backup("commerce/0", "zone1-0000000100-20240115.120000")
    async with await handle.add_file("data-frm", FILE_SIZE_UNKNOWN) as writer:
        await writer.write(b"...")
    await handle.end_backup()

    storage.close()
"""

# Configuration
from .config import BackupStorageConfig

# Core interface, backends and manager
from .core import (
    BackupStorage,
    BackupHandle,
    BackupWriter,
    BackupReader,
    ErrorRecorder,
    FileBackupStorage,
    MemoryBackupStorage,
    MemoryStore,
    FILE_BACKEND,
    MEMORY_BACKEND,
    get_registry,
    register_backup_storage,
    register_default_backends,
    get_backup_storage,
    BackupManager,
    MANIFEST_FILE
)

# Models
from .models import (
    FILE_SIZE_UNKNOWN,
    HandleMode,
    ChecksumAlgorithm,
    BackupKey,
    StorageParams,
    ManifestFile,
    BackupManifest
)

# Exceptions
from .exceptions import (
    BackupStorageError,
    BackupAlreadyExistsError,
    BackupNotFoundError,
    InvalidFileNameError,
    HandleModeError,
    BackupSessionError,
    BackupCorruptedError
)

# Utilities
from .utils import ChecksumCalculator, RetentionPolicy

__all__ = [
    # Configuration
    'BackupStorageConfig',

    # Core
    'BackupStorage',
    'BackupHandle',
    'BackupWriter',
    'BackupReader',
    'ErrorRecorder',
    'FileBackupStorage',
    'MemoryBackupStorage',
    'MemoryStore',
    'FILE_BACKEND',
    'MEMORY_BACKEND',
    'get_registry',
    'register_backup_storage',
    'register_default_backends',
    'get_backup_storage',
    'BackupManager',
    'MANIFEST_FILE',

    # Models
    'FILE_SIZE_UNKNOWN',
    'HandleMode',
    'ChecksumAlgorithm',
    'BackupKey',
    'StorageParams',
    'ManifestFile',
    'BackupManifest',

    # Exceptions
    'BackupStorageError',
    'BackupAlreadyExistsError',
    'BackupNotFoundError',
    'InvalidFileNameError',
    'HandleModeError',
    'BackupSessionError',
    'BackupCorruptedError',

    # Utilities
    'ChecksumCalculator',
    'RetentionPolicy',
]
