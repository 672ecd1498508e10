import json

import pytest

from backup_storage import (
    MANIFEST_FILE,
    BackupCorruptedError,
    BackupManager,
    BackupNotFoundError,
    BackupSessionError,
    BackupStorageConfig,
    BackupStorageError,
    ChecksumAlgorithm,
    ChecksumCalculator,
    MemoryBackupStorage,
)

DIRECTORY = "commerce/0"


@pytest.fixture()
def source_dir(tmp_path):
    source = tmp_path / "mysql"
    (source / "commerce").mkdir(parents=True)
    (source / "ibdata1").write_bytes(b"\x00" * 10000)
    (source / "commerce" / "customer.ibd").write_bytes(b"customer rows")
    (source / "commerce" / "corder.ibd").write_bytes(b"order rows" * 500)
    (source / "empty.log").write_bytes(b"")
    return source


@pytest.fixture()
def manager(storage):
    return BackupManager(storage, BackupStorageConfig(max_concurrent_files=2, read_chunk_size_kb=1))


@pytest.mark.asyncio
async def test_create_backup_writes_files_and_manifest(manager, storage, source_dir):
    manifest = await manager.create_backup(DIRECTORY, "zone1-100-1", source_dir)

    assert manifest.file_count == 4
    assert sorted(f.path for f in manifest.files) == [
        "commerce/corder.ibd", "commerce/customer.ibd", "empty.log", "ibdata1"
    ]
    assert manifest.total_size == 10000 + 13 + 5000

    (backup,) = await storage.list_backups(DIRECTORY)
    calculator = ChecksumCalculator(ChecksumAlgorithm.SHA256)
    for index, entry in enumerate(manifest.files):
        async with await backup.read_file(str(index)) as reader:
            data = await reader.read()
        assert data == (source_dir / entry.path).read_bytes()
        assert entry.checksum == calculator.calculate_data_checksum(data)

    async with await backup.read_file(MANIFEST_FILE) as reader:
        stored = json.loads(await reader.read())
    assert stored["name"] == "zone1-100-1"
    assert len(stored["files"]) == 4


@pytest.mark.asyncio
async def test_restore_round_trip(manager, source_dir, tmp_path):
    await manager.create_backup(DIRECTORY, "zone1-100-1", source_dir)
    target = tmp_path / "restore"

    manifest = await manager.restore_backup(DIRECTORY, target)

    for entry in manifest.files:
        assert (target / entry.path).read_bytes() == (source_dir / entry.path).read_bytes()


@pytest.mark.asyncio
async def test_restore_picks_newest_by_default(manager, tmp_path):
    for name, content in [("b-1", b"old"), ("b-2", b"new")]:
        source = tmp_path / name
        source.mkdir()
        (source / "data").write_bytes(content)
        await manager.create_backup(DIRECTORY, name, source)

    await manager.restore_backup(DIRECTORY, tmp_path / "latest")
    await manager.restore_backup(DIRECTORY, tmp_path / "first", name="b-1")

    assert (tmp_path / "latest" / "data").read_bytes() == b"new"
    assert (tmp_path / "first" / "data").read_bytes() == b"old"


@pytest.mark.asyncio
async def test_restore_missing_backup(manager, tmp_path):
    with pytest.raises(BackupNotFoundError):
        await manager.restore_backup(DIRECTORY, tmp_path / "restore")

    source = tmp_path / "src"
    source.mkdir()
    await manager.create_backup(DIRECTORY, "b-1", source)
    with pytest.raises(BackupNotFoundError):
        await manager.restore_backup(DIRECTORY, tmp_path / "restore", name="b-9")


@pytest.mark.asyncio
async def test_restore_detects_corruption(tmp_path, source_dir):
    storage = MemoryBackupStorage()
    manager = BackupManager(storage)
    manifest = await manager.create_backup(DIRECTORY, "b-1", source_dir)
    index = [f.path for f in manifest.files].index("ibdata1")

    files = storage.store.committed[(DIRECTORY, "b-1")]
    files[str(index)] = files[str(index)][:-1] + b"!"

    with pytest.raises(BackupCorruptedError) as exc_info:
        await manager.restore_backup(DIRECTORY, tmp_path / "restore")
    assert exc_info.value.expected_checksum != exc_info.value.actual_checksum


@pytest.mark.asyncio
async def test_failed_file_aborts_backup(manager, storage, stored_bytes, source_dir, monkeypatch):
    original = BackupManager._backup_file

    async def flaky_backup_file(self, handle, semaphore, index, source, path):
        if path.name == "customer.ibd":
            handle.error_recorder.record_error(str(index), OSError("read error"))
            raise OSError("read error")
        return await original(self, handle, semaphore, index, source, path)

    monkeypatch.setattr(BackupManager, "_backup_file", flaky_backup_file)

    with pytest.raises(BackupSessionError) as exc_info:
        await manager.create_backup(DIRECTORY, "b-1", source_dir)
    assert len(exc_info.value.failed_files) == 1

    assert await storage.list_backups(DIRECTORY) == []
    assert stored_bytes(storage, DIRECTORY, "b-1") == 0


@pytest.mark.asyncio
async def test_unreadable_source_aborts_backup(manager, storage, source_dir):
    (source_dir / "ibdata1").chmod(0)
    try:
        if _readable(source_dir / "ibdata1"):
            pytest.skip("running with privileges that ignore file permissions")
        with pytest.raises(BackupSessionError):
            await manager.create_backup(DIRECTORY, "b-1", source_dir)
    finally:
        (source_dir / "ibdata1").chmod(0o644)

    assert await storage.list_backups(DIRECTORY) == []


def _readable(path):
    try:
        with open(path, "rb"):
            return True
    except OSError:
        return False


@pytest.mark.asyncio
async def test_create_backup_requires_directory(manager, tmp_path):
    with pytest.raises(BackupStorageError) as exc_info:
        await manager.create_backup(DIRECTORY, "b-1", tmp_path / "missing")
    assert "not a directory" in str(exc_info.value)


@pytest.mark.asyncio
async def test_list_remove_and_prune(storage, tmp_path):
    manager = BackupManager(storage, BackupStorageConfig(min_backups_to_keep=2))
    source = tmp_path / "src"
    source.mkdir()
    (source / "f").write_bytes(b"x")
    for i in range(1, 6):
        await manager.create_backup(DIRECTORY, f"b-{i}", source)

    assert await manager.list_backups(DIRECTORY) == ["b-1", "b-2", "b-3", "b-4", "b-5"]

    removed = await manager.prune_backups(DIRECTORY, keep=3)
    assert removed == ["b-1", "b-2"]
    assert await manager.list_backups(DIRECTORY) == ["b-3", "b-4", "b-5"]

    # min_backups_to_keep wins over a smaller keep.
    removed = await manager.prune_backups(DIRECTORY, keep=0)
    assert removed == ["b-3"]
    assert await manager.list_backups(DIRECTORY) == ["b-4", "b-5"]

    await manager.remove_backup(DIRECTORY, "b-4")
    assert await manager.list_backups(DIRECTORY) == ["b-5"]
    with pytest.raises(BackupNotFoundError):
        await manager.remove_backup(DIRECTORY, "b-4")


@pytest.mark.asyncio
async def test_get_manifest(manager, source_dir):
    created = await manager.create_backup(DIRECTORY, "b-1", source_dir)
    manifest = await manager.get_manifest(DIRECTORY, "b-1")
    assert manifest == created
