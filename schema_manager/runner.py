"""
Schema Change Runner

Drives one schema change through a Controller and an Executor:

    OPEN -> READ -> READ_FAIL
                 -> READ_EMPTY
                 -> READ_NON_EMPTY -> EXECUTOR_OPEN -> VALIDATE -> VALIDATION_FAIL
                                                              -> VALIDATION_SUCCESS -> EXECUTE -> COMPLETE

The run is sequential and never retries. Read and validation failures stop
the run before anything is applied; shard failures are collected by the
executor, passed to the controller, and only then raised as a
SchemaChangeError carrying the full result.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, List

from .exceptions import SchemaChangeError
from .interfaces import Controller, Executor
from .models import ExecuteResult

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """States of a schema change run."""
    OPEN = "OPEN"
    READ = "READ"
    READ_FAIL = "READ_FAIL"
    READ_EMPTY = "READ_EMPTY"
    READ_NON_EMPTY = "READ_NON_EMPTY"
    EXECUTOR_OPEN = "EXECUTOR_OPEN"
    VALIDATE = "VALIDATE"
    VALIDATION_FAIL = "VALIDATION_FAIL"
    VALIDATION_SUCCESS = "VALIDATION_SUCCESS"
    EXECUTE = "EXECUTE"
    COMPLETE = "COMPLETE"


TRANSITIONS: Dict[RunState, FrozenSet[RunState]] = {
    RunState.OPEN: frozenset({RunState.READ}),
    RunState.READ: frozenset({RunState.READ_FAIL, RunState.READ_EMPTY, RunState.READ_NON_EMPTY}),
    RunState.READ_NON_EMPTY: frozenset({RunState.EXECUTOR_OPEN}),
    RunState.EXECUTOR_OPEN: frozenset({RunState.VALIDATE}),
    RunState.VALIDATE: frozenset({RunState.VALIDATION_FAIL, RunState.VALIDATION_SUCCESS}),
    RunState.VALIDATION_SUCCESS: frozenset({RunState.EXECUTE}),
    RunState.EXECUTE: frozenset({RunState.COMPLETE}),
    RunState.READ_FAIL: frozenset(),
    RunState.READ_EMPTY: frozenset(),
    RunState.VALIDATION_FAIL: frozenset(),
    RunState.COMPLETE: frozenset(),
}

TERMINAL_STATES = frozenset(state for state, targets in TRANSITIONS.items() if not targets)


class SchemaChangeRun:
    """
    One pass of a controller/executor pair through the state machine.

    ``history`` lists every state entered, which makes the path of a run
    easy to assert on and to log.

    Example:
        ```python
        change = SchemaChangeRun(LocalController("/var/schema"), ShardedExecutor(client))
        result = await change.run()
        print(change.state, change.history)
        ```
    """

    def __init__(self, controller: Controller, executor: Executor):
        self.controller = controller
        self.executor = executor
        self.state = RunState.OPEN
        self.history: List[RunState] = [RunState.OPEN]

    def _advance(self, target: RunState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid schema change transition {self.state.value} -> {target.value}")
        logger.debug(f"Schema change run: {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    async def run(self) -> ExecuteResult:
        """
        Run the schema change.

        Returns:
            The executor's result, or an empty ExecuteResult when there was
            nothing to apply

        Raises:
            SchemaChangeError: If any shard failed or the executor reported an error
            Exception: Whatever the controller's open/read, the executor's
                open/validate, or a propagating hook raised
        """
        try:
            await self.controller.open()
        except Exception as e:
            logger.error(f"Failed to open schema change controller: {e}")
            raise

        try:
            return await self._read_and_apply()
        finally:
            self.controller.close()

    async def _read_and_apply(self) -> ExecuteResult:
        self._advance(RunState.READ)
        try:
            sqls = await self.controller.read()
        except Exception as e:
            self._advance(RunState.READ_FAIL)
            logger.error(f"Failed to read schema changes: {e}")
            try:
                await self.controller.on_read_fail(e)
            except Exception as hook_error:
                # Dropped: the read failure is what the caller sees.
                logger.warning(f"on_read_fail hook failed: {hook_error}")
            raise

        try:
            await self.controller.on_read_success()
        except Exception as hook_error:
            logger.warning(f"on_read_success hook failed: {hook_error}")

        if not sqls:
            self._advance(RunState.READ_EMPTY)
            logger.info("No pending schema changes")
            return ExecuteResult()

        self._advance(RunState.READ_NON_EMPTY)
        keyspace = self.controller.keyspace
        logger.info(f"Read {len(sqls)} schema change statements for keyspace {keyspace}")

        self._advance(RunState.EXECUTOR_OPEN)
        try:
            await self.executor.open(keyspace)
        except Exception as e:
            logger.error(f"Failed to open executor for keyspace {keyspace}: {e}")
            raise

        try:
            return await self._validate_and_execute(keyspace, sqls)
        finally:
            self.executor.close()

    async def _validate_and_execute(self, keyspace: str, sqls: List[str]) -> ExecuteResult:
        self._advance(RunState.VALIDATE)
        try:
            await self.executor.validate(sqls)
        except Exception as e:
            self._advance(RunState.VALIDATION_FAIL)
            logger.error(f"Schema change validation failed for keyspace {keyspace}: {e}")
            # An error raised by the hook replaces the validation error.
            await self.controller.on_validation_fail(e)
            raise

        self._advance(RunState.VALIDATION_SUCCESS)
        await self.controller.on_validation_success()

        self._advance(RunState.EXECUTE)
        result = await self.executor.execute(sqls)

        await self.controller.on_executor_complete(result)
        self._advance(RunState.COMPLETE)

        if result.failed:
            logger.error(
                f"Schema change on keyspace {keyspace} failed: "
                f"{len(result.failed_shards)} failed shards, {len(result.success_shards)} succeeded"
            )
            raise SchemaChangeError(result, keyspace)

        logger.info(
            f"Schema change on keyspace {keyspace} applied to "
            f"{len(result.success_shards)} shards in {result.total_time_spent:.3f}s"
        )
        return result


async def run(controller: Controller, executor: Executor) -> ExecuteResult:
    """
    Apply the controller's pending schema changes with the executor.

    Example:
        ```python
        controller = PlainController("ALTER TABLE t ADD COLUMN c INT", "commerce")
        result = await run(controller, ShardedExecutor(client))
        ```
    """
    return await SchemaChangeRun(controller, executor).run()
