"""
Binlog Player Client

API and registration mechanism for binlog player clients. A client connects
to a tablet and streams binlog transactions filtered by table set or by key
range. Implementations register a factory under a protocol name; the active
protocol comes from ``binlog.protocol`` (BINLOG_PLAYER_PROTOCOL) and is
resolved when a client is requested.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from config.settings import ShardOpsSettings, load_settings
from utils.registry import Registry
from .models import BinlogTransaction, Charset, KeyRange, Tablet

logger = logging.getLogger(__name__)


class BinlogTransactionStream(ABC):
    """
    Stream returned by stream_tables and stream_key_range.

    Iterate with ``async for``, or call recv() directly.
    """

    @abstractmethod
    async def recv(self) -> Optional[BinlogTransaction]:
        """
        Return the next transaction, or None once the stream has ended.

        Raises:
            asyncio.CancelledError: If the awaiting task is cancelled
        """

    def __aiter__(self) -> "BinlogTransactionStream":
        return self

    async def __anext__(self) -> BinlogTransaction:
        transaction = await self.recv()
        if transaction is None:
            raise StopAsyncIteration
        return transaction


class BinlogPlayerClient(ABC):
    """Interface all binlog player clients implement."""

    @abstractmethod
    async def dial(self, tablet: Tablet) -> None:
        """Connect to a tablet."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""

    @abstractmethod
    async def stream_tables(
        self,
        position: str,
        tables: List[str],
        charset: Charset
    ) -> BinlogTransactionStream:
        """Stream updates to the given tables, starting after position."""

    @abstractmethod
    async def stream_key_range(
        self,
        position: str,
        key_range: KeyRange,
        charset: Charset
    ) -> BinlogTransactionStream:
        """Stream updates to rows in key_range, starting after position."""


ClientFactory = Callable[[], BinlogPlayerClient]

_client_factories: Registry[ClientFactory] = Registry("binlog player client factory")


def register_client_factory(name: str, factory: ClientFactory) -> None:
    """
    Add a new client factory. Call during startup.

    Raises:
        DuplicateRegistrationError: If a factory with this name already exists
    """
    _client_factories.register(name, factory)
    logger.info(f"Registered binlog player client factory '{name}'")


def get_client_factory(settings: Optional[ShardOpsSettings] = None) -> ClientFactory:
    """
    Return the factory for the configured protocol.

    Raises:
        ConfigurationError: If no factory is registered for the protocol
    """
    settings = settings or load_settings()
    return _client_factories.get(settings.binlog.protocol)


def new_client(settings: Optional[ShardOpsSettings] = None) -> BinlogPlayerClient:
    """Create a client for the configured protocol."""
    return get_client_factory(settings)()
