"""Shared services.

Plugins publish objects other plugins can use (a database handle, a
shared HTTP session...). Registration returns a disposer, which the plugin
context adds to the publishing plugin's teardown.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """Named services shared between plugins."""

    def __init__(self) -> None:
        self._services: dict[str, Any] = {}

    def add(self, name: str, service: Any, replace: bool = False) -> Callable[[], None]:
        """Publish a service.

        Args:
            name: Service name
            service: The service object
            replace: Overwrite an existing service with the same name

        Returns:
            Disposer that removes the service if it is still the registered one

        Raises:
            ValueError: If the name is taken and ``replace`` is False
        """
        if name in self._services and not replace:
            raise ValueError(f"Service already registered: {name}")

        self._services[name] = service
        logger.info(f"Registered service: {name}")

        def dispose() -> None:
            if self._services.get(name) is service:
                del self._services[name]
                logger.info(f"Removed service: {name}")

        return dispose

    def get(self, name: str, default: Any = None) -> Any:
        return self._services.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self._services[name]

    def __contains__(self, name: object) -> bool:
        return name in self._services

    def __iter__(self) -> Iterator[str]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)
