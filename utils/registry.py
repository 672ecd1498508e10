"""
Write-Once Registry

Provides a small name -> implementation table used for every pluggable
component in the package (backup storage backends, schema change controller
factories, binlog player client factories).

Registration is expected to happen once per name during startup. After that
the registry is only read, so lookups take no lock; registration does.
"""

import logging
import threading
from typing import Dict, Generic, List, TypeVar

from shardops_exceptions import ConfigurationError, DuplicateRegistrationError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Registry(Generic[T]):
    """
    Name to implementation table with write-once entries.

    Example:
        ```python
        storages: Registry[BackupStorage] = Registry("backup storage")
        storages.register("file", FileBackupStorage(config))

        storage = storages.get("file")
        ```
    """

    def __init__(self, kind: str):
        """
        Initialize an empty registry.

        Args:
            kind: Human-readable description of what is registered, used in
                  error messages
        """
        self.kind = kind
        self._entries: Dict[str, T] = {}
        self._lock = threading.Lock()

    def register(self, name: str, implementation: T) -> None:
        """
        Register an implementation under a name.

        Args:
            name: Selection name used in configuration
            implementation: The object to return for this name

        Raises:
            DuplicateRegistrationError: If the name is already registered
        """
        with self._lock:
            if name in self._entries:
                raise DuplicateRegistrationError(
                    f"{self.kind} '{name}' is already registered"
                )
            self._entries[name] = implementation
        logger.debug(f"Registered {self.kind} '{name}'")

    def get(self, name: str) -> T:
        """
        Look up the implementation registered under a name.

        Raises:
            ConfigurationError: If nothing is registered under the name
        """
        try:
            return self._entries[name]
        except KeyError:
            raise ConfigurationError(
                f"no registered implementation of {self.kind} named '{name}' "
                f"(registered: {', '.join(self.names()) or 'none'})"
            ) from None

    def names(self) -> List[str]:
        """Return the registered names, sorted."""
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
