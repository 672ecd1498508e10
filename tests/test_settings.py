import pytest
import yaml
from pydantic import ValidationError

from backup_storage import BackupKey, BackupStorageConfig, StorageParams
from config.settings import ShardOpsSettings, load_settings


def test_defaults():
    settings = ShardOpsSettings()
    assert settings.backup.implementation == ""
    assert settings.backup.max_concurrent_files == 4
    assert settings.binlog.protocol == "grpc"
    assert settings.schema_manager.controller == "local"
    assert settings.schema_manager.allow_dml is False


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("BACKUP_STORAGE_IMPLEMENTATION", "memory")
    monkeypatch.setenv("FILE_BACKUP_STORAGE_ROOT", "/mnt/backups")
    monkeypatch.setenv("BINLOG_PLAYER_PROTOCOL", "test")

    settings = ShardOpsSettings()
    assert settings.backup.implementation == "memory"
    assert settings.backup.file_root == "/mnt/backups"
    assert settings.binlog.protocol == "test"


def test_load_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "backup": {"implementation": "file", "file_root": str(tmp_path), "min_backups_to_keep": 3},
        "schema_manager": {"allow_dml": True},
    }))

    settings = load_settings(str(path))
    assert settings.backup.implementation == "file"
    assert settings.backup.min_backups_to_keep == 3
    assert settings.schema_manager.allow_dml is True
    assert settings.binlog.protocol == "grpc"


def test_load_settings_missing_file(tmp_path):
    settings = load_settings(str(tmp_path / "missing.yaml"))
    assert settings.backup.implementation == ""


def test_to_yaml_round_trip(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"backup": {"implementation": "memory"}}))
    settings = load_settings(str(path))

    dumped = yaml.safe_load(settings.to_yaml())
    assert dumped["backup"]["implementation"] == "memory"
    assert dumped["binlog"]["protocol"] == "grpc"


def test_backup_storage_config_from_settings(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "backup": {"file_root": "/srv/backups", "fsync_on_close": False, "max_concurrent_files": 2}
    }))
    config = BackupStorageConfig.from_settings(load_settings(str(path)).backup)
    assert config.root_path == "/srv/backups"
    assert config.fsync_on_close is False
    assert config.max_concurrent_files == 2


@pytest.mark.parametrize("field,value", [
    ("io_workers", 0),
    ("max_concurrent_files", 0),
    ("read_chunk_size_kb", -1),
    ("min_backups_to_keep", -1),
    ("root_path", ""),
])
def test_backup_storage_config_validation(field, value):
    with pytest.raises(ValueError):
        BackupStorageConfig(**{field: value})


def test_model_config_options():
    assert ShardOpsSettings.model_config["env_nested_delimiter"] == "__"
    assert StorageParams.model_config["arbitrary_types_allowed"] is True

    key = BackupKey(directory="commerce/0", name="b")
    with pytest.raises(ValidationError):
        key.name = "c"
