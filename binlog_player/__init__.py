"""
Binlog Player Module

Client interface for streaming binlog transactions from a tablet, and the
protocol-name registry used to pick an implementation.
"""

from .models import Tablet, Charset, KeyRange, BinlogStatement, BinlogTransaction
from .client import (
    BinlogTransactionStream,
    BinlogPlayerClient,
    ClientFactory,
    register_client_factory,
    get_client_factory,
    new_client
)

__all__ = [
    'Tablet',
    'Charset',
    'KeyRange',
    'BinlogStatement',
    'BinlogTransaction',
    'BinlogTransactionStream',
    'BinlogPlayerClient',
    'ClientFactory',
    'register_client_factory',
    'get_client_factory',
    'new_client',
]
