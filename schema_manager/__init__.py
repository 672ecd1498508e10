"""
Schema Manager Module

Sequential schema change pipeline: a Controller sources statements for a
keyspace, an Executor validates and applies them on every shard, and run()
drives both through a fixed state machine.

Typical usage:

    from schema_manager import PlainController, ShardedExecutor, SchemaChangeError, run

    controller = PlainController("ALTER TABLE customer ADD COLUMN email VARCHAR(128)", "commerce")
    try:
        result = await run(controller, ShardedExecutor(client))
    except SchemaChangeError as e:
        print(e.result.failed_shards)
"""

from .models import RunStatus, QueryResult, ShardWithError, ShardResult, ExecuteResult
from .exceptions import SchemaManagerError, ValidationError, SchemaChangeError
from .interfaces import Controller, Executor, ControllerFactory
from .runner import RunState, TRANSITIONS, TERMINAL_STATES, SchemaChangeRun, run
from .controllers import PlainController, LocalController, split_sql
from .executor import ShardQueryClient, ShardedExecutor, DDL_VERBS
from .registry import (
    LOCAL_CONTROLLER,
    PLAIN_CONTROLLER,
    register_controller_factory,
    get_controller_factory,
    register_default_controller_factories,
    new_controller
)

__all__ = [
    # Models
    'RunStatus',
    'QueryResult',
    'ShardWithError',
    'ShardResult',
    'ExecuteResult',

    # Exceptions
    'SchemaManagerError',
    'ValidationError',
    'SchemaChangeError',

    # Interfaces
    'Controller',
    'Executor',
    'ControllerFactory',

    # Runner
    'RunState',
    'TRANSITIONS',
    'TERMINAL_STATES',
    'SchemaChangeRun',
    'run',

    # Implementations
    'PlainController',
    'LocalController',
    'split_sql',
    'ShardQueryClient',
    'ShardedExecutor',
    'DDL_VERBS',

    # Registry
    'LOCAL_CONTROLLER',
    'PLAIN_CONTROLLER',
    'register_controller_factory',
    'get_controller_factory',
    'register_default_controller_factories',
    'new_controller',
]
