import pytest

from schema_manager import (
    ExecuteResult,
    LocalController,
    PlainController,
    ShardResult,
    ShardWithError,
    run,
    split_sql,
)
from shardops_exceptions import UsageError


def test_split_sql():
    text = "ALTER TABLE a ADD c INT;\n\n CREATE TABLE b (id INT) ;;  "
    assert split_sql(text) == ["ALTER TABLE a ADD c INT", "CREATE TABLE b (id INT)"]
    assert split_sql("  ") == []


@pytest.mark.asyncio
async def test_plain_controller():
    controller = PlainController("CREATE TABLE t (id INT); ALTER TABLE t ADD c INT", "commerce")
    await controller.open()
    assert await controller.read() == ["CREATE TABLE t (id INT)", "ALTER TABLE t ADD c INT"]
    assert controller.keyspace == "commerce"
    await controller.on_executor_complete(ExecuteResult())
    controller.close()


def test_plain_controller_from_params():
    controller = PlainController.from_params({"sql": "DROP TABLE t", "keyspace": "commerce"})
    assert controller.keyspace == "commerce"
    with pytest.raises(UsageError):
        PlainController.from_params({"sql": "DROP TABLE t"})


@pytest.fixture()
def schema_dir(tmp_path):
    root = tmp_path / "schema"
    (root / "commerce" / "input").mkdir(parents=True)
    (root / "customer" / "input").mkdir(parents=True)
    (root / "customer" / "input" / "2-second.sql").write_text("ALTER TABLE c ADD x INT;")
    (root / "customer" / "input" / "1-first.sql").write_text("CREATE TABLE c (id INT); ALTER TABLE c ADD y INT")
    (root / "customer" / "input" / "notes.txt").write_text("ignored")
    return root


@pytest.mark.asyncio
async def test_local_controller_picks_first_pending_file(schema_dir):
    controller = LocalController(schema_dir)
    await controller.open()

    assert controller.keyspace == "customer"
    assert controller.sql_path.name == "1-first.sql"
    assert await controller.read() == ["CREATE TABLE c (id INT)", "ALTER TABLE c ADD y INT"]

    controller.close()
    assert controller.sql_path is None


@pytest.mark.asyncio
async def test_local_controller_without_pending_changes(tmp_path):
    (tmp_path / "commerce" / "input").mkdir(parents=True)
    controller = LocalController(tmp_path)
    await controller.open()
    assert await controller.read() == []


@pytest.mark.asyncio
async def test_local_controller_missing_directory(tmp_path):
    controller = LocalController(tmp_path / "missing")
    with pytest.raises(FileNotFoundError):
        await controller.open()


@pytest.mark.asyncio
async def test_local_controller_completes_file(schema_dir):
    controller = LocalController(schema_dir, user="alice")
    await controller.open()
    await controller.read()
    await controller.on_executor_complete(ExecuteResult(success_shards=[ShardResult(shard="0")]))

    keyspace_dir = schema_dir / "customer"
    assert (keyspace_dir / "complete" / "1-first.sql").exists()
    assert not (keyspace_dir / "input" / "1-first.sql").exists()
    log = (keyspace_dir / "log" / "1-first.log").read_text()
    assert "user=alice" in log
    assert "status=complete" in log


@pytest.mark.asyncio
async def test_local_controller_files_failures_under_error(schema_dir):
    controller = LocalController(schema_dir)
    await controller.open()
    await controller.on_executor_complete(
        ExecuteResult(failed_shards=[ShardWithError(shard="0", err="boom")])
    )
    assert (schema_dir / "customer" / "error" / "1-first.sql").exists()
    assert "boom" in (schema_dir / "customer" / "log" / "1-first.log").read_text()


@pytest.mark.asyncio
async def test_local_controller_validation_failure(schema_dir):
    controller = LocalController(schema_dir)
    await controller.open()
    await controller.on_validation_fail(ValueError("bad statement"))
    assert (schema_dir / "customer" / "error" / "1-first.sql").exists()
    assert "validation failed: bad statement" in (schema_dir / "customer" / "log" / "1-first.log").read_text()


@pytest.mark.asyncio
async def test_local_controller_full_run(schema_dir, make_executor):
    executor = make_executor()
    await run(LocalController(schema_dir), executor)

    assert executor.keyspace == "customer"
    assert (schema_dir / "customer" / "complete" / "1-first.sql").exists()

    # The next run picks up the next file.
    await run(LocalController(schema_dir), make_executor())
    assert (schema_dir / "customer" / "complete" / "2-second.sql").exists()


def test_local_controller_from_params(tmp_path):
    controller = LocalController.from_params({"schema_change_dir": str(tmp_path), "schema_change_user": "bob"})
    assert controller.schema_change_dir == tmp_path
    assert controller.user == "bob"
    with pytest.raises(UsageError):
        LocalController.from_params({})
