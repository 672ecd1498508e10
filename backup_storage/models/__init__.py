"""
Backup Storage Models

Exports all data models and constants for backup storage operations.
"""

from .entities import (
    FILE_SIZE_UNKNOWN,
    HandleMode,
    ChecksumAlgorithm,
    BackupKey,
    StorageParams,
    ManifestFile,
    BackupManifest
)

__all__ = [
    # Constants
    'FILE_SIZE_UNKNOWN',

    # Enums
    'HandleMode',
    'ChecksumAlgorithm',

    # Entities
    'BackupKey',
    'StorageParams',
    'ManifestFile',
    'BackupManifest'
]
