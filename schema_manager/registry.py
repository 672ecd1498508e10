"""
Controller Factory Registry

Controller factories are registered by name at startup and the one to use
is chosen from settings (``schema_manager.controller``).
"""

import logging
import threading
from typing import Dict, Optional

from config.settings import ShardOpsSettings, load_settings
from utils.registry import Registry
from .controllers import (
    LocalController,
    PlainController,
    SCHEMA_CHANGE_DIR_NAME,
    SCHEMA_CHANGE_USER
)
from .interfaces import Controller, ControllerFactory

logger = logging.getLogger(__name__)

LOCAL_CONTROLLER = "local"
PLAIN_CONTROLLER = "plain"

_controller_factories: Registry[ControllerFactory] = Registry("schema change controller factory")
_defaults_lock = threading.Lock()
_defaults_registered = False


def register_controller_factory(name: str, factory: ControllerFactory) -> None:
    """
    Register a controller factory. Call once, during startup.

    Raises:
        DuplicateRegistrationError: If the name is already registered
    """
    _controller_factories.register(name, factory)
    logger.info(f"Registered schema change controller factory '{name}'")


def get_controller_factory(name: str) -> ControllerFactory:
    """
    Get a registered controller factory.

    Raises:
        ConfigurationError: If no factory is registered under the name
    """
    return _controller_factories.get(name)


def register_default_controller_factories() -> None:
    """Register the "local" and "plain" controllers. Safe to call repeatedly."""
    global _defaults_registered
    with _defaults_lock:
        if _defaults_registered:
            return
        register_controller_factory(LOCAL_CONTROLLER, LocalController.from_params)
        register_controller_factory(PLAIN_CONTROLLER, PlainController.from_params)
        _defaults_registered = True


def controller_params(settings: ShardOpsSettings) -> Dict[str, str]:
    """Factory parameters derived from the schema_manager settings."""
    return {
        SCHEMA_CHANGE_DIR_NAME: settings.schema_manager.schema_change_dir,
        SCHEMA_CHANGE_USER: settings.schema_manager.schema_change_user,
    }


def new_controller(
    settings: Optional[ShardOpsSettings] = None,
    params: Optional[Dict[str, str]] = None
) -> Controller:
    """
    Build the controller selected by ``schema_manager.controller``.

    Args:
        settings: Settings to read the selection from (loaded if None)
        params: Extra factory parameters, overriding those from settings
    """
    settings = settings or load_settings()
    factory = get_controller_factory(settings.schema_manager.controller)
    merged = controller_params(settings)
    merged.update(params or {})
    return factory(merged)
