"""
Configuration Module

This module provides centralized configuration management for shard operations:
- Backup storage backend selection and tuning
- Binlog player client protocol
- Schema change sourcing and validation
- Configuration loading from YAML files and environment variables

Implementation names are resolved lazily against the registries, never at
parse time.
"""

from .settings import (
    ShardOpsSettings,
    BackupStorageSettings,
    BinlogPlayerSettings,
    SchemaManagerSettings,
    load_settings
)

__all__ = [
    'ShardOpsSettings',
    'BackupStorageSettings',
    'BinlogPlayerSettings',
    'SchemaManagerSettings',
    'load_settings'
]
