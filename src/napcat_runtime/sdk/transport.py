"""Client-side transport abstraction.

Transports move raw text frames between the runtime and a bridge endpoint.
They know nothing about echo tokens or event categories; correlation and
classification happen one level up in :class:`~napcat_runtime.sdk.connection.Connection`.

Architecture:
- ClientTransport is the PROTOCOL (interface) for all client transports
- BaseClientTransport provides the connection state machine
- WebSocketClientTransport talks to a real bridge (forward WebSocket)
- MockClientTransport is in-memory, for tests
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlencode

from ..errors import NotConnectedError

logger = logging.getLogger(__name__)


class TransportState(str, Enum):
    """Socket state, independent of the bridge session on top of it."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass
class ClientTransportConfig:
    """Configuration for client transports."""

    mode: str = "websocket"  # "websocket" | "mock"

    # Endpoint
    url: str = "ws://localhost:3333"
    token: str = ""

    # Keep-alive
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0

    @property
    def endpoint(self) -> str:
        """URL with the access token attached as a query parameter."""
        if not self.token:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode({'access_token': self.token})}"


@runtime_checkable
class ClientTransport(Protocol):
    """Protocol for client transports.

    A transport carries opaque text frames:
    - connect/disconnect open and close the socket
    - send writes one encoded action
    - receive iterates inbound frames until the peer closes
    """

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        ...

    async def connect(self) -> None:
        """Establish the connection.

        Raises:
            ConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Close the connection gracefully."""
        ...

    async def send(self, data: bytes) -> None:
        """Send one frame.

        Raises:
            NotConnectedError: If not connected
        """
        ...

    def receive(self) -> AsyncIterator[str | bytes]:
        """Yield inbound frames until the remote side closes."""
        ...


class BaseClientTransport(ABC):
    """Shared state handling for bridge transports.

    Subclasses supply the socket work; this class serializes connect and
    disconnect under one lock and refuses sends while not connected.
    """

    def __init__(self, config: ClientTransportConfig):
        self.config = config
        self._state = TransportState.DISCONNECTED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._state == TransportState.CONNECTED

    async def connect(self) -> None:
        """Establish connection."""
        async with self._lock:
            if self._state == TransportState.CONNECTED:
                return

            self._state = TransportState.CONNECTING
            try:
                await self._do_connect()
                self._state = TransportState.CONNECTED
                logger.info(f"{self.__class__.__name__} connected to {self.config.url}")
            except Exception as e:
                self._state = TransportState.DISCONNECTED
                raise ConnectionError(f"Failed to connect to {self.config.url}: {e}") from e

    async def disconnect(self) -> None:
        """Close the connection."""
        async with self._lock:
            if self._state in (TransportState.DISCONNECTED, TransportState.CLOSED):
                return

            self._state = TransportState.CLOSED
            try:
                await self._do_disconnect()
            finally:
                self._state = TransportState.DISCONNECTED
                logger.info(f"{self.__class__.__name__} disconnected from {self.config.url}")

    async def send(self, data: bytes) -> None:
        """Send one frame."""
        if not self.is_connected:
            raise NotConnectedError("Transport not connected")
        await self._do_send(data)

    def receive(self) -> AsyncIterator[str | bytes]:
        """Yield inbound frames until the remote side closes."""
        return self._receive_frames()

    # Socket work, per transport
    @abstractmethod
    async def _do_connect(self) -> None:
        """Open the underlying socket."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Close the underlying socket."""
        ...

    @abstractmethod
    async def _do_send(self, data: bytes) -> None:
        """Write one frame to the socket."""
        ...

    @abstractmethod
    def _receive_frames(self) -> AsyncIterator[str | bytes]:
        """Async generator over inbound frames."""
        ...


class WebSocketClientTransport(BaseClientTransport):
    """Transport over a forward WebSocket exposed by the bridge.

    Wire format:
    - Outbound: one JSON action per text message
    - Inbound: one JSON response or push frame per text message
    """

    def __init__(self, config: ClientTransportConfig | None = None):
        super().__init__(config or ClientTransportConfig(mode="websocket"))
        self._ws: Any = None  # websockets ClientConnection

    async def _do_connect(self) -> None:
        """Open the WebSocket."""
        import websockets

        self._ws = await websockets.connect(
            self.config.endpoint,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
            max_size=None,
        )

    async def _do_disconnect(self) -> None:
        """Close the WebSocket."""
        if self._ws:
            await self._ws.close()
            self._ws = None

    async def _do_send(self, data: bytes) -> None:
        """Send a frame as a text message."""
        if not self._ws:
            raise NotConnectedError("WebSocket not connected")
        await self._ws.send(data.decode("utf-8"))

    async def _receive_frames(self) -> AsyncIterator[str | bytes]:
        """Yield messages until the socket closes."""
        if not self._ws:
            raise NotConnectedError("WebSocket not connected")

        import websockets

        try:
            async for message in self._ws:
                yield message
        except websockets.ConnectionClosed as e:
            logger.info(f"WebSocket closed by peer: {e}")
        except OSError as e:
            logger.error(f"WebSocket receive error: {e}")


class MockClientTransport(BaseClientTransport):
    """Mock transport for testing.

    Records outbound frames and lets tests feed inbound ones. Actions with a
    canned response are answered automatically with the request's echo.
    No actual I/O - everything is in-memory.

    Usage:
        transport = MockClientTransport()
        transport.set_response("get_login_info", {"user_id": 1001, "nickname": "bot"})
        transport.inject({"post_type": "message", ...})
        transport.close_remote()

        assert transport.sent_frames[0]["action"] == "get_login_info"
    """

    def __init__(self, config: ClientTransportConfig | None = None) -> None:
        super().__init__(config or ClientTransportConfig(mode="mock", url="mock://bridge"))
        self._inbound: asyncio.Queue[str | bytes | None] = asyncio.Queue()
        self._sent: list[dict[str, Any]] = []
        self._responses: dict[str, dict[str, Any]] = {}

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        """Decoded frames sent through this transport."""
        return list(self._sent)

    def sent_actions(self, action: str) -> list[dict[str, Any]]:
        """Sent frames for one action name."""
        return [frame for frame in self._sent if frame.get("action") == action]

    def set_response(
        self,
        action: str,
        data: Any = None,
        *,
        retcode: int = 0,
        message: str = "",
    ) -> None:
        """Answer every future call of ``action`` with this response."""
        self._responses[action] = {
            "status": "ok" if retcode == 0 else "failed",
            "retcode": retcode,
            "data": data,
            "message": message,
        }

    def inject(self, payload: dict[str, Any] | str | bytes) -> None:
        """Queue an inbound frame as if the bridge had sent it."""
        raw = json.dumps(payload) if isinstance(payload, dict) else payload
        self._inbound.put_nowait(raw)

    def respond(self, echo: str, data: Any = None, *, retcode: int = 0, message: str = "") -> None:
        """Queue a response frame for a specific echo token."""
        self.inject(
            {
                "echo": echo,
                "status": "ok" if retcode == 0 else "failed",
                "retcode": retcode,
                "data": data,
                "message": message,
            }
        )

    def close_remote(self) -> None:
        """Simulate the bridge closing the socket."""
        self._inbound.put_nowait(None)

    async def _do_connect(self) -> None:
        """No-op for mock."""
        pass

    async def _do_disconnect(self) -> None:
        """Wake any pending receiver."""
        self._inbound.put_nowait(None)

    async def _do_send(self, data: bytes) -> None:
        """Record the frame and queue a canned response if one is set."""
        frame = json.loads(data)
        self._sent.append(frame)

        canned = self._responses.get(frame.get("action", ""))
        if canned is not None:
            self.inject({"echo": frame.get("echo"), **canned})

    async def _receive_frames(self) -> AsyncIterator[str | bytes]:
        """Yield injected frames until closed."""
        while True:
            raw = await self._inbound.get()
            if raw is None:
                break
            yield raw


# Factory functions


def create_websocket_transport(
    url: str = "ws://localhost:3333",
    token: str = "",
) -> WebSocketClientTransport:
    """Create a WebSocket transport for a bridge endpoint.

    Args:
        url: Bridge WebSocket URL
        token: Access token, sent as the ``access_token`` query parameter

    Returns:
        WebSocketClientTransport for full-duplex communication
    """
    config = ClientTransportConfig(mode="websocket", url=url, token=token)
    return WebSocketClientTransport(config)


def create_mock_transport(login_info: dict[str, Any] | None = None) -> MockClientTransport:
    """Create a mock transport for testing.

    Args:
        login_info: Canned ``get_login_info`` answer, used by the handshake

    Returns:
        MockClientTransport for testing
    """
    transport = MockClientTransport()
    if login_info is not None:
        transport.set_response("get_login_info", login_info)
    return transport
