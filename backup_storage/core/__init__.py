"""
Backup Storage Core

Core classes for backup storage: the storage/handle/stream interface, the
built-in backends, the backend registry, and the backup manager.
"""

from .interface import BackupStorage, BackupHandle, BackupWriter, BackupReader
from .error_recorder import ErrorRecorder
from .file_backend import FileBackupStorage
from .memory_backend import MemoryBackupStorage, MemoryStore
from .registry import (
    FILE_BACKEND,
    MEMORY_BACKEND,
    get_registry,
    register_backup_storage,
    register_default_backends,
    get_backup_storage
)
from .manager import BackupManager, MANIFEST_FILE

__all__ = [
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
    'MANIFEST_FILE'
]
