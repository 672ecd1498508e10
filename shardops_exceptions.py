"""
Shard Operations Exceptions

This module defines the root exceptions for the shardops package so that
callers can tell configuration mistakes and caller bugs apart from failures
of the storage or query layers.
"""


class ShardOpsError(Exception):
    """Base exception for all shardops errors"""
    pass


class ConfigurationError(ShardOpsError):
    """Raised when configuration is invalid or names an unknown implementation"""
    pass


class DuplicateRegistrationError(ShardOpsError):
    """
    Raised when an implementation name is registered twice.

    Registration happens once at startup; a second registration under the
    same name is a programming error and must never be caught and ignored.
    """
    pass


class UsageError(ShardOpsError):
    """Raised when an API is called in a way its contract forbids"""
    pass
