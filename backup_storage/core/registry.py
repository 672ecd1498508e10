"""
Backup Storage Registry

Process-wide table of backup storage implementations, and selection of the
active one from configuration.

Backends are registered once at startup. The active backend is chosen by
name (``backup.implementation`` / BACKUP_STORAGE_IMPLEMENTATION) when
get_backup_storage() is first called, not when settings are parsed.
"""

import logging
import threading
from typing import Optional

from config.settings import ShardOpsSettings, load_settings
from utils.registry import Registry
from ..config import BackupStorageConfig
from .file_backend import FileBackupStorage
from .interface import BackupStorage
from .memory_backend import MemoryBackupStorage

logger = logging.getLogger(__name__)

FILE_BACKEND = "file"
MEMORY_BACKEND = "memory"

_registry: Registry[BackupStorage] = Registry("backup storage")
_defaults_lock = threading.Lock()
_defaults_registered = False


def get_registry() -> Registry[BackupStorage]:
    """
    Get the global backup storage registry.

    Returns:
        Global Registry of BackupStorage implementations
    """
    return _registry


def register_backup_storage(name: str, storage: BackupStorage) -> None:
    """
    Register a backup storage implementation. Call once, during startup.

    Raises:
        DuplicateRegistrationError: If the name is already registered
    """
    _registry.register(name, storage)
    logger.info(f"Registered backup storage implementation '{name}'")


def register_default_backends(settings: Optional[ShardOpsSettings] = None) -> None:
    """
    Register the built-in "file" and "memory" backends on the global registry.

    Calling it more than once is harmless; registering either name by other
    means still fails loudly.
    """
    global _defaults_registered
    with _defaults_lock:
        if _defaults_registered:
            return
        settings = settings or load_settings()
        register_backup_storage(
            FILE_BACKEND,
            FileBackupStorage(BackupStorageConfig.from_settings(settings.backup))
        )
        register_backup_storage(MEMORY_BACKEND, MemoryBackupStorage())
        _defaults_registered = True


def get_backup_storage(
    settings: Optional[ShardOpsSettings] = None,
    registry: Optional[Registry[BackupStorage]] = None
) -> BackupStorage:
    """
    Return the configured BackupStorage implementation.

    Should be called after startup registration. When all operations are
    done, call close() on the result to free pooled resources.

    Args:
        settings: Settings to read the selection from (loaded if None)
        registry: Registry to resolve against (the global one if None)

    Raises:
        ConfigurationError: If no implementation is registered under the
            configured name
    """
    settings = settings or load_settings()
    registry = registry if registry is not None else _registry
    name = settings.backup.implementation
    storage = registry.get(name)
    logger.debug(f"Using backup storage implementation '{name}'")
    return storage
