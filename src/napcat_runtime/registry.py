"""Connection registry.

Owns every live connection, keyed by the account identity each one
resolved during its handshake. Two physical connections for the same
account are never active at once: the later one is closed on arrival.

Also hosts the cross-bot filter used when one subscription is fanned out
over every connection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .config import ConnectionConfig
from .errors import DuplicateConnectionError
from .sdk.connection import Connection
from .sdk.transport import ClientTransport, create_websocket_transport

logger = logging.getLogger(__name__)

# Builds a transport for an endpoint
TransportFactory = Callable[[ConnectionConfig], ClientTransport]


def default_transport_factory(config: ConnectionConfig) -> ClientTransport:
    return create_websocket_transport(config.url, config.token)


def _actor_ids(event: Mapping[str, Any]) -> set[int]:
    ids = set()
    for name in ("user_id", "operator_id"):
        value = event.get(name)
        if value is None:
            continue
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            # Not a numeric account, so never one of the bots
            continue
    return ids


def should_deliver(
    connection: Connection,
    event: Mapping[str, Any],
    connections: Iterable[Connection],
) -> bool:
    """Decide whether a fanned-out handler on ``connection`` sees ``event``.

    Suppressed when:
    - the event's sender or operator is any active bot account, so bridged
      bots never react to each other (or to themselves)
    - it is a private message addressed to a different account

    Args:
        connection: Connection the handler is registered on
        event: Normalized event
        connections: Every active connection
    """
    if event.get("post_type") == "message" and event.get("message_type") == "private":
        if event.get("self_id") != connection.self_id:
            return False

    bot_ids = {c.self_id for c in [connection, *connections] if c.self_id is not None}
    return not (_actor_ids(event) & bot_ids)


class ConnectionRegistry:
    """Active connections keyed by account identity.

    Usage:
        registry = ConnectionRegistry()
        connection = await registry.connect(ConnectionConfig(host="127.0.0.1"))
        ...
        await registry.close_all()
    """

    def __init__(self, transport_factory: TransportFactory = default_transport_factory):
        self._transport_factory = transport_factory
        self._connections: dict[int, Connection] = {}

    @property
    def connections(self) -> list[Connection]:
        """Active connections in registration order."""
        return list(self._connections.values())

    @property
    def primary(self) -> Connection | None:
        """First registered connection, used for setup and owner notices."""
        return next(iter(self._connections.values()), None)

    @property
    def identities(self) -> list[int]:
        return list(self._connections)

    def get(self, self_id: int) -> Connection | None:
        return self._connections.get(self_id)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, self_id: object) -> bool:
        return self_id in self._connections

    async def connect(self, config: ConnectionConfig) -> Connection:
        """Open a connection and register it once its identity is known.

        Raises:
            ConnectionError: If the transport cannot connect
            DuplicateConnectionError: If the account is already connected;
                the new connection is closed before this is raised
        """
        connection = Connection(self._transport_factory(config), name=config.label)
        await connection.open()

        try:
            self_id = await connection.fetch_login_info()
        except Exception:
            await connection.close()
            raise

        if self_id in self._connections:
            await connection.close()
            logger.warning(f"Rejected duplicate connection {config.label} for account {self_id}")
            raise DuplicateConnectionError(self_id)

        self.register(connection)
        return connection

    def register(self, connection: Connection) -> None:
        """Add an open, logged-in connection.

        Raises:
            ValueError: If the connection has no identity yet
            DuplicateConnectionError: If the identity is taken
        """
        if connection.self_id is None:
            raise ValueError(f"Connection {connection.label} has no identity yet")
        if connection.self_id in self._connections:
            raise DuplicateConnectionError(connection.self_id)

        self._connections[connection.self_id] = connection
        connection.on("ws.close", self._on_close)
        logger.info(f"Registered connection {connection.label}")

    def _on_close(self, connection: Connection) -> None:
        self_id = connection.self_id
        if self_id is not None and self._connections.get(self_id) is connection:
            del self._connections[self_id]
            logger.info(f"Connection {connection.label} left the registry")

    async def connect_all(
        self, configs: Iterable[ConnectionConfig]
    ) -> list[tuple[ConnectionConfig, BaseException]]:
        """Connect every endpoint concurrently.

        Returns:
            (config, error) pairs for endpoints that failed
        """
        configs = list(configs)
        results = await asyncio.gather(
            *(self.connect(config) for config in configs), return_exceptions=True
        )

        failures: list[tuple[ConnectionConfig, BaseException]] = []
        for config, result in zip(configs, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"Failed to connect {config.label}: {result}")
                failures.append((config, result))
        return failures

    def should_deliver(self, connection: Connection, event: Mapping[str, Any]) -> bool:
        """Cross-bot filter against the currently active connections."""
        return should_deliver(connection, event, self._connections.values())

    async def close_all(self) -> None:
        """Close every connection."""
        connections = self.connections
        await asyncio.gather(*(c.close() for c in connections), return_exceptions=True)
        self._connections.clear()

    async def wait_closed(self) -> None:
        """Block until every currently active connection has closed."""
        await asyncio.gather(*(c.wait_closed() for c in self.connections))
