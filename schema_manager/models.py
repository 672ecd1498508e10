"""
Schema Change Entities

Defines Pydantic models for the structured outcome of applying schema
changes across the shards of a keyspace.

Typical usage:

    from schema_manager import ExecuteResult, run

    result = await run(controller, executor)
    for shard in result.success_shards:
        print(f"{shard.shard} applied at position {shard.position}")
"""

from enum import Enum
from typing import Any, List

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    """
    Overall status of an executed schema change.

    PARTIAL means some shards applied the change while others failed; the
    run is still a failure.
    """
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class QueryResult(BaseModel):
    """
    Result of one statement on one shard.

    Attributes:
        rows_affected: Rows changed by the statement
        insert_id: Last auto-increment id generated, if any
        rows: Returned rows (empty for DDL)
    """
    rows_affected: int = 0
    insert_id: int = 0
    rows: List[List[Any]] = Field(default_factory=list)


class ShardWithError(BaseModel):
    """Why a shard failed to execute a statement."""
    shard: str
    err: str


class ShardResult(BaseModel):
    """
    Statement results on one shard.

    Attributes:
        shard: Shard name
        results: One QueryResult per executed statement
        position: Replication position guaranteed to be after the change was
            applied. Opaque here; callers use it to wait for replicas.
    """
    shard: str
    results: List[QueryResult] = Field(default_factory=list)
    position: str = ""


class ExecuteResult(BaseModel):
    """
    Structured outcome of applying schema changes.

    An executor always returns one of these, whether every shard succeeded
    or not. The run is failed if any shard failed or executor_err is set,
    even when other shards succeeded.

    Attributes:
        failed_shards: Shards that failed, with their errors
        success_shards: Shards that applied every executed statement
        cur_sql_index: Index of the statement being executed when the run stopped
        sqls: Statements in execution order
        uuids: Identifiers of changes handed to an asynchronous migration system
        executor_err: Whole-run executor error (empty when none)
        total_time_spent: Wall time of execute, in seconds
    """
    failed_shards: List[ShardWithError] = Field(default_factory=list)
    success_shards: List[ShardResult] = Field(default_factory=list)
    cur_sql_index: int = 0
    sqls: List[str] = Field(default_factory=list)
    uuids: List[str] = Field(default_factory=list)
    executor_err: str = ""
    total_time_spent: float = 0.0

    @property
    def failed(self) -> bool:
        return bool(self.executor_err) or len(self.failed_shards) > 0

    @property
    def status(self) -> RunStatus:
        if not self.failed:
            return RunStatus.SUCCESS
        if self.success_shards:
            return RunStatus.PARTIAL
        return RunStatus.FAILED
