"""
Pydantic Settings for Shard Operations

This module provides strongly-typed configuration settings using Pydantic,
with support for environment variables and YAML configuration files.

Implementation names (backup storage backend, binlog player protocol, schema
change controller) are plain strings here. They are resolved against the
registries at first use, so a settings object can be built before any
backend has registered itself.
"""

from typing import Optional, Union
from pathlib import Path
import os

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_yaml import to_yaml_str


class BackupStorageSettings(BaseSettings):
    """
    Backup storage settings.

    These settings choose the storage backend used for creating and restoring
    backups, and tune the built-in file backend and backup manager.
    """
    implementation: str = Field("", validation_alias=AliasChoices("implementation", "BACKUP_STORAGE_IMPLEMENTATION"),
                                description="Which backup storage implementation to use for creating and restoring backups")
    file_root: str = Field("./backups", validation_alias=AliasChoices("file_root", "FILE_BACKUP_STORAGE_ROOT"),
                           description="Root directory of the file backup storage")
    fsync_on_close: bool = Field(True, validation_alias=AliasChoices("fsync_on_close", "FILE_BACKUP_STORAGE_FSYNC"),
                                 description="Whether the file backend fsyncs files before a session commits")
    max_concurrent_files: int = Field(4, validation_alias=AliasChoices("max_concurrent_files", "BACKUP_MAX_CONCURRENT_FILES"),
                                      description="Number of files the backup manager copies at once")
    min_backups_to_keep: int = Field(1, validation_alias=AliasChoices("min_backups_to_keep", "BACKUP_MIN_BACKUPS_TO_KEEP"),
                                     description="Backups always kept when pruning, regardless of the requested count")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)


class BinlogPlayerSettings(BaseSettings):
    """
    Binlog player settings.

    Selects the client protocol used to stream binlogs from a tablet.
    """
    protocol: str = Field("grpc", validation_alias=AliasChoices("protocol", "BINLOG_PLAYER_PROTOCOL"),
                          description="The protocol to download binlogs from a tablet")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)


class SchemaManagerSettings(BaseSettings):
    """
    Schema change settings.

    Controls where schema changes are sourced from and how they are validated
    before they are applied to every shard of a keyspace.
    """
    controller: str = Field("local", validation_alias=AliasChoices("controller", "SCHEMA_CHANGE_CONTROLLER"),
                            description="Name of the registered controller factory that sources schema changes")
    schema_change_dir: str = Field("./schema_changes", validation_alias=AliasChoices("schema_change_dir", "SCHEMA_CHANGE_DIR"),
                                   description="Directory watched by the local controller")
    schema_change_user: str = Field("", validation_alias=AliasChoices("schema_change_user", "SCHEMA_CHANGE_USER"),
                                    description="User recorded as the submitter of schema changes")
    allow_dml: bool = Field(False, validation_alias=AliasChoices("allow_dml", "SCHEMA_CHANGE_ALLOW_DML"),
                            description="Whether statements other than DDL pass validation")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)


class ShardOpsSettings(BaseSettings):
    """
    Main settings class that consolidates all configuration categories.

    Usage:
        # Load from environment variables and defaults
        settings = ShardOpsSettings()

        # Load from YAML file
        settings = ShardOpsSettings.from_yaml('config.yaml')

        # Access nested settings
        backend = settings.backup.implementation
        protocol = settings.binlog.protocol
    """
    backup: BackupStorageSettings = Field(default_factory=BackupStorageSettings,
                                          description="Backup storage configuration")
    binlog: BinlogPlayerSettings = Field(default_factory=BinlogPlayerSettings,
                                         description="Binlog player client configuration")
    schema_manager: SchemaManagerSettings = Field(default_factory=SchemaManagerSettings,
                                                  description="Schema change configuration")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, env_nested_delimiter="__")

    @classmethod
    def from_yaml(cls, yaml_file: Union[str, Path]) -> "ShardOpsSettings":
        """Load settings from YAML file"""
        import yaml
        with open(yaml_file, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self) -> str:
        """Dump settings as YAML text"""
        return to_yaml_str(self)


def load_settings(config_path: Optional[str] = None) -> ShardOpsSettings:
    """
    Load settings from file and/or environment variables.

    Args:
        config_path: Path to YAML configuration file. If None or file doesn't exist,
                    falls back to environment variables and default values.

    Returns:
        ShardOpsSettings object with loaded configuration

    Example:
        # Load from specific config file
        settings = load_settings("/etc/shardops/config.yaml")

        # Load from environment variables and defaults
        settings = load_settings()
    """
    if config_path and os.path.exists(config_path):
        return ShardOpsSettings.from_yaml(config_path)
    return ShardOpsSettings()
