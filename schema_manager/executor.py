"""
Sharded Schema Change Executor

Applies statements to every shard of a keyspace through a ShardQueryClient.
Each statement runs on all shards concurrently; the executor moves to the
next statement only when every shard applied the current one.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .exceptions import SchemaManagerError, ValidationError
from .interfaces import Executor
from .models import ExecuteResult, QueryResult, ShardResult, ShardWithError

logger = logging.getLogger(__name__)

DDL_VERBS = frozenset({"CREATE", "ALTER", "DROP", "RENAME", "TRUNCATE"})


class ShardQueryClient(ABC):
    """
    Access to the query-routing layer used by ShardedExecutor.

    Implementations wrap whatever talks to the shards (a routing gateway,
    direct tablet connections, a test fake).
    """

    @abstractmethod
    async def get_shards(self, keyspace: str) -> List[str]:
        """Return the shard names of a keyspace."""

    @abstractmethod
    async def execute(self, keyspace: str, shard: str, sql: str) -> QueryResult:
        """Run one statement on the primary of one shard."""

    @abstractmethod
    async def position(self, keyspace: str, shard: str) -> str:
        """Return the current replication position of the shard's primary."""


class ShardedExecutor(Executor):
    """
    Executor that applies schema changes shard by shard.

    Validation rejects empty statements and, unless allow_dml is set,
    anything that is not DDL. Shard failures never raise from execute(); they
    end up in ExecuteResult.failed_shards and execution stops after the
    statement on which they happened.

    Example:
        ```python
        executor = ShardedExecutor(client, allow_dml=False)
        await executor.open("commerce")
        await executor.validate(sqls)
        result = await executor.execute(sqls)
        executor.close()
        ```
    """

    def __init__(self, client: ShardQueryClient, allow_dml: bool = False):
        """
        Args:
            client: Client used to reach the shards
            allow_dml: Accept statements other than DDL
        """
        self._client = client
        self.allow_dml = allow_dml
        self._keyspace: Optional[str] = None
        self._shards: List[str] = []

    @property
    def keyspace(self) -> Optional[str]:
        return self._keyspace

    @property
    def shards(self) -> List[str]:
        return list(self._shards)

    async def open(self, keyspace: str) -> None:
        shards = await self._client.get_shards(keyspace)
        if not shards:
            raise SchemaManagerError("keyspace has no shards", keyspace=keyspace)
        self._keyspace = keyspace
        self._shards = list(shards)
        logger.info(f"Executor opened for keyspace {keyspace} with {len(self._shards)} shards")

    async def validate(self, sqls: List[str]) -> None:
        if not sqls:
            raise ValidationError("no statements to validate", keyspace=self._keyspace)
        for sql in sqls:
            statement = sql.strip()
            if not statement:
                raise ValidationError("empty statement", sql=sql, keyspace=self._keyspace)
            verb = statement.split(None, 1)[0].upper()
            if verb not in DDL_VERBS and not self.allow_dml:
                raise ValidationError(
                    f"non-DDL statement '{verb}' is not allowed",
                    sql=sql,
                    keyspace=self._keyspace,
                    context={"allowed": sorted(DDL_VERBS)}
                )

    async def execute(self, sqls: List[str]) -> ExecuteResult:
        start_time = time.monotonic()
        result = ExecuteResult(sqls=list(sqls))

        if self._keyspace is None:
            result.executor_err = "executor is not open"
            return result

        keyspace = self._keyspace
        shard_results: Dict[str, List[QueryResult]] = {shard: [] for shard in self._shards}

        for index, sql in enumerate(sqls):
            result.cur_sql_index = index
            logger.info(f"Executing statement {index} on {len(self._shards)} shards of {keyspace}: {sql}")

            outcomes = await asyncio.gather(
                *(self._client.execute(keyspace, shard, sql) for shard in self._shards),
                return_exceptions=True
            )

            for shard, outcome in zip(self._shards, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Statement {index} failed on shard {shard}: {outcome}")
                    result.failed_shards.append(ShardWithError(shard=shard, err=str(outcome)))
                else:
                    shard_results[shard].append(outcome)

            if result.failed_shards:
                break

        failed = {f.shard for f in result.failed_shards}
        succeeded = [shard for shard in self._shards if shard not in failed]
        positions = await asyncio.gather(
            *(self._client.position(keyspace, shard) for shard in succeeded),
            return_exceptions=True
        )
        for shard, position in zip(succeeded, positions):
            if isinstance(position, BaseException):
                logger.error(f"Could not read replication position of shard {shard}: {position}")
                result.failed_shards.append(
                    ShardWithError(shard=shard, err=f"failed to read replication position: {position}")
                )
                continue
            result.success_shards.append(
                ShardResult(shard=shard, results=shard_results[shard], position=position)
            )

        result.total_time_spent = time.monotonic() - start_time
        return result

    def close(self) -> None:
        # The client belongs to the caller.
        self._keyspace = None
        self._shards = []
