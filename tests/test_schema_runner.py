import json

import pytest

from schema_manager import (
    TERMINAL_STATES,
    TRANSITIONS,
    ExecuteResult,
    RunState,
    RunStatus,
    SchemaChangeError,
    SchemaChangeRun,
    ShardResult,
    ShardWithError,
    ValidationError,
    run,
)


@pytest.mark.asyncio
async def test_successful_run(make_controller, make_executor):
    controller = make_controller(sqls=["ALTER TABLE t ADD COLUMN c INT"])
    expected = ExecuteResult(
        sqls=["ALTER TABLE t ADD COLUMN c INT"],
        success_shards=[ShardResult(shard="-80"), ShardResult(shard="80-")]
    )
    executor = make_executor(result=expected)

    change = SchemaChangeRun(controller, executor)
    result = await change.run()

    assert result is expected
    assert executor.keyspace == "commerce"
    assert executor.calls == ["open", "validate", "execute", "close"]
    assert controller.calls == [
        "open", "read", "on_read_success", "on_validation_success", "on_executor_complete", "close"
    ]
    assert controller.results == [expected]
    assert change.state == RunState.COMPLETE
    assert change.history == [
        RunState.OPEN, RunState.READ, RunState.READ_NON_EMPTY, RunState.EXECUTOR_OPEN,
        RunState.VALIDATE, RunState.VALIDATION_SUCCESS, RunState.EXECUTE, RunState.COMPLETE
    ]


@pytest.mark.asyncio
async def test_empty_read_never_opens_executor(make_controller, make_executor):
    controller = make_controller(sqls=[])
    executor = make_executor()

    change = SchemaChangeRun(controller, executor)
    result = await change.run()

    assert result == ExecuteResult()
    assert result.sqls == []
    assert executor.calls == []
    assert controller.calls == ["open", "read", "on_read_success", "close"]
    assert change.state == RunState.READ_EMPTY


@pytest.mark.asyncio
async def test_shard_failure_fails_the_run(make_controller, make_executor):
    controller = make_controller(sqls=["ALTER TABLE t ADD COLUMN c INT"])
    partial = ExecuteResult(
        sqls=["ALTER TABLE t ADD COLUMN c INT"],
        failed_shards=[ShardWithError(shard="80-", err="Duplicate column name 'c'")],
        success_shards=[ShardResult(shard="-80", position="MySQL56/abc:1-10")]
    )
    executor = make_executor(result=partial)

    with pytest.raises(SchemaChangeError) as exc_info:
        await run(controller, executor)

    err = exc_info.value
    assert err.result is partial
    assert err.result.status == RunStatus.PARTIAL
    assert "Duplicate column name" in str(err)
    embedded = str(err).split("ExecuteResult: ", 1)[1].split(" | ")[0]
    assert json.loads(embedded)["failed_shards"][0]["shard"] == "80-"

    # The completion hook saw the partial result before the run failed.
    assert controller.results == [partial]
    assert controller.calls[-1] == "close"
    assert executor.calls[-1] == "close"


@pytest.mark.asyncio
async def test_executor_error_fails_the_run(make_controller, make_executor):
    controller = make_controller(sqls=["DROP TABLE t"])
    executor = make_executor(result=ExecuteResult(sqls=["DROP TABLE t"], executor_err="lost connection"))

    with pytest.raises(SchemaChangeError) as exc_info:
        await run(controller, executor)
    assert exc_info.value.result.executor_err == "lost connection"
    assert exc_info.value.result.status == RunStatus.FAILED


@pytest.mark.asyncio
async def test_read_failure(make_controller, make_executor):
    read_error = IOError("ticket system unavailable")
    controller = make_controller(read_error=read_error)
    executor = make_executor()

    change = SchemaChangeRun(controller, executor)
    with pytest.raises(IOError) as exc_info:
        await change.run()

    assert exc_info.value is read_error
    assert controller.calls.count("on_read_fail") == 1
    assert controller.errors == [read_error]
    assert executor.calls == []
    assert controller.calls == ["open", "read", "on_read_fail", "close"]
    assert change.state == RunState.READ_FAIL


@pytest.mark.asyncio
async def test_read_fail_hook_error_is_discarded(make_controller, make_executor):
    read_error = IOError("read failed")
    controller = make_controller(
        read_error=read_error,
        hook_errors={"on_read_fail": RuntimeError("could not persist status")}
    )
    executor = make_executor()

    with pytest.raises(IOError) as exc_info:
        await run(controller, executor)
    assert exc_info.value is read_error
    assert controller.calls[-1] == "close"


@pytest.mark.asyncio
async def test_validation_failure(make_controller, make_executor):
    validation_error = ValidationError("non-DDL statement 'DELETE' is not allowed")
    controller = make_controller(sqls=["DELETE FROM t"])
    executor = make_executor(validate_error=validation_error)

    change = SchemaChangeRun(controller, executor)
    with pytest.raises(ValidationError) as exc_info:
        await change.run()

    assert exc_info.value is validation_error
    assert controller.errors == [validation_error]
    assert "on_validation_fail" in controller.calls
    assert "execute" not in executor.calls
    assert executor.calls == ["open", "validate", "close"]
    assert controller.calls[-1] == "close"
    assert change.state == RunState.VALIDATION_FAIL


@pytest.mark.asyncio
async def test_validation_fail_hook_error_propagates(make_controller, make_executor):
    hook_error = RuntimeError("could not move file to error/")
    controller = make_controller(sqls=["DELETE FROM t"], hook_errors={"on_validation_fail": hook_error})
    executor = make_executor(validate_error=ValidationError("rejected"))

    with pytest.raises(RuntimeError) as exc_info:
        await run(controller, executor)
    assert exc_info.value is hook_error
    assert isinstance(exc_info.value.__context__, ValidationError)
    assert executor.calls == ["open", "validate", "close"]
    assert controller.calls[-1] == "close"


@pytest.mark.asyncio
async def test_executor_complete_hook_error_propagates(make_controller, make_executor):
    hook_error = RuntimeError("status update failed")
    controller = make_controller(sqls=["ALTER TABLE t ADD c INT"], hook_errors={"on_executor_complete": hook_error})
    failing = ExecuteResult(failed_shards=[ShardWithError(shard="0", err="boom")])
    executor = make_executor(result=failing)

    with pytest.raises(RuntimeError) as exc_info:
        await run(controller, executor)
    assert exc_info.value is hook_error


@pytest.mark.asyncio
async def test_validation_success_hook_error_stops_run(make_controller, make_executor):
    hook_error = RuntimeError("approval missing")
    controller = make_controller(sqls=["ALTER TABLE t ADD c INT"], hook_errors={"on_validation_success": hook_error})
    executor = make_executor()

    with pytest.raises(RuntimeError):
        await run(controller, executor)
    assert "execute" not in executor.calls
    assert executor.calls[-1] == "close"


@pytest.mark.asyncio
async def test_controller_open_failure(make_controller, make_executor):
    controller = make_controller(open_error=OSError("no such directory"))
    executor = make_executor()

    with pytest.raises(OSError):
        await run(controller, executor)
    assert controller.calls == ["open"]
    assert executor.calls == []


@pytest.mark.asyncio
async def test_executor_open_failure_closes_controller(make_controller, make_executor):
    controller = make_controller(sqls=["ALTER TABLE t ADD c INT"])
    executor = make_executor(open_error=ConnectionError("gateway down"))

    with pytest.raises(ConnectionError):
        await run(controller, executor)
    assert executor.calls == ["open"]
    assert controller.calls[-1] == "close"


def test_transition_table_shape():
    assert TERMINAL_STATES == {
        RunState.READ_FAIL, RunState.READ_EMPTY, RunState.VALIDATION_FAIL, RunState.COMPLETE
    }
    assert set(TRANSITIONS) == set(RunState)
    assert TRANSITIONS[RunState.READ] == {RunState.READ_FAIL, RunState.READ_EMPTY, RunState.READ_NON_EMPTY}


def test_invalid_transition_is_rejected(make_controller, make_executor):
    change = SchemaChangeRun(make_controller(), make_executor())
    with pytest.raises(RuntimeError):
        change._advance(RunState.EXECUTE)
