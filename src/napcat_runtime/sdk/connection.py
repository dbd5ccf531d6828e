"""One live session with a bridge endpoint.

A Connection owns a transport and two background tasks:

- the reader decodes every inbound frame; responses settle their pending
  call immediately, push frames go onto the dispatch queue
- the dispatcher classifies push frames and awaits their handlers one at a
  time, in arrival order

Responses never wait behind handlers, so a handler can ``await`` a call on
the same connection without deadlocking.

Calls have no timeout. A call whose response never arrives stays pending
until the connection closes or the caller is cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import ConnectionClosedError, NotConnectedError, RemoteError
from ..protocol.actions import ActionType, new_echo
from ..protocol.codec import decode, encode
from ..protocol.frames import PushFrame, ResponseFrame
from ..protocol.segment import Sendable, normalize_sendable
from .classifier import classify
from .emitter import EventCallback, EventEmitter
from .events import BridgeEvent
from .facades import FriendFacade, GroupFacade
from .transport import ClientTransport, MockClientTransport, create_mock_transport

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection lifecycle."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class PendingCall:
    """An outstanding action waiting for its response."""

    echo: str
    action: str
    future: asyncio.Future[ResponseFrame]
    created_at: float = field(default_factory=time.monotonic)


def _action_name(action: str | ActionType) -> str:
    return action.value if isinstance(action, ActionType) else action


class Connection:
    """Correlates calls with responses and dispatches push events.

    Usage:
        connection = Connection(create_websocket_transport(url, token))
        await connection.open()
        await connection.fetch_login_info()

        connection.on("message.group", on_group_message)
        await connection.send_group_msg(123456, "hello")
    """

    def __init__(
        self,
        transport: ClientTransport,
        *,
        name: str = "",
        token_factory: Callable[[], str] = new_echo,
    ):
        self.transport = transport
        self.name = name
        self.self_id: int | None = None
        self.nickname = ""

        self._token_factory = token_factory
        self._state = ConnectionState.CONNECTING
        self._pending: dict[str, PendingCall] = {}
        self._emitter = EventEmitter()
        self._push_queue: asyncio.Queue[PushFrame] = asyncio.Queue()
        self._reader_task: asyncio.Task[None] | None = None
        self._dispatcher_task: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def label(self) -> str:
        """Human-readable identifier for logs."""
        base = self.name or "connection"
        return f"{base}({self.self_id})" if self.self_id is not None else base

    @property
    def pending_calls(self) -> dict[str, PendingCall]:
        """Snapshot of outstanding calls keyed by echo token."""
        return dict(self._pending)

    @property
    def emitter(self) -> EventEmitter:
        return self._emitter

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Connect the transport and start the reader and dispatcher.

        Raises:
            ConnectionError: If the transport cannot connect
        """
        if self._state != ConnectionState.CONNECTING:
            raise NotConnectedError(f"Connection {self.label} cannot be reopened")

        await self.transport.connect()
        self._state = ConnectionState.OPEN
        self._reader_task = asyncio.create_task(self._read_loop())
        self._dispatcher_task = asyncio.create_task(self._dispatch_loop())
        logger.info(f"Connection {self.label} open")

        await self._emitter.emit("ws.open", self)

    async def fetch_login_info(self) -> int:
        """Resolve the remote account identity.

        Returns:
            The account's numeric id, also stored as ``self_id``
        """
        data = await self.call(ActionType.GET_LOGIN_INFO)
        self.self_id = int(data["user_id"])
        self.nickname = data.get("nickname", "")
        logger.info(f"Connection {self.label} logged in as {self.nickname}")
        return self.self_id

    async def close(self) -> None:
        """Tear the connection down.

        Every pending call fails with :class:`ConnectionClosedError`. Safe to
        call more than once and from inside a handler.
        """
        if self._state == ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED

        self._reject_pending()

        current = asyncio.current_task()
        for task in (self._reader_task, self._dispatcher_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        try:
            await self.transport.disconnect()
        except Exception as e:
            logger.warning(f"Error disconnecting {self.label}: {e}")

        logger.info(f"Connection {self.label} closed")
        self._closed.set()
        await self._emitter.emit("ws.close", self)

    async def wait_closed(self) -> None:
        """Block until the connection has closed."""
        await self._closed.wait()

    def _reject_pending(self) -> None:
        pending = list(self._pending.values())
        self._pending.clear()

        for call in pending:
            if not call.future.done():
                call.future.set_exception(
                    ConnectionClosedError(
                        f"Connection {self.label} closed before {call.action} answered"
                    )
                )
        if pending:
            logger.warning(f"Rejected {len(pending)} pending call(s) on {self.label}")

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def call(self, action: str | ActionType, params: dict[str, Any] | None = None) -> Any:
        """Send an action and wait for its response.

        Args:
            action: Action name
            params: Action parameters

        Returns:
            The response's ``data``

        Raises:
            NotConnectedError: If the connection is not open
            RemoteError: If the bridge answers with a non-zero retcode
            ConnectionClosedError: If the connection closes first
        """
        name = _action_name(action)
        if self._state != ConnectionState.OPEN:
            raise NotConnectedError(f"Cannot call {name}: connection {self.label} is not open")

        encoded = encode(name, params, token_factory=self._token_factory)
        while encoded.echo in self._pending:
            encoded = encode(name, params, token_factory=self._token_factory)

        future: asyncio.Future[ResponseFrame] = asyncio.get_running_loop().create_future()
        self._pending[encoded.echo] = PendingCall(encoded.echo, name, future)
        logger.debug(f"Calling {name} on {self.label} (echo={encoded.echo})")

        try:
            await self.transport.send(encoded.data)
            response = await future
        finally:
            # Covers send failures and cancelled callers
            self._pending.pop(encoded.echo, None)

        if not response.ok:
            raise RemoteError(response.retcode, response.error_message, name)
        return response.data

    def _settle(self, response: ResponseFrame) -> None:
        call = self._pending.pop(response.echo, None)
        if call is None:
            logger.debug(f"Ignoring response with unknown echo {response.echo} on {self.label}")
            return
        if not call.future.done():
            call.future.set_result(response)

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def _read_loop(self) -> None:
        """Decode inbound frames until the transport ends."""
        try:
            async for raw in self.transport.receive():
                frame = decode(raw)
                if frame is None:
                    continue
                if isinstance(frame, ResponseFrame):
                    self._settle(frame)
                else:
                    self._push_queue.put_nowait(frame)
        except asyncio.CancelledError:
            return
        except Exception as e:
            logger.error(f"Read loop error on {self.label}: {e}")

        if self._state != ConnectionState.CLOSED:
            logger.warning(f"Connection {self.label} closed by remote")
            await self.close()

    async def _dispatch_loop(self) -> None:
        """Dispatch push frames one at a time until the connection closes.

        A handler may close the connection; the loop then ends after the
        current frame instead of waiting on the queue.
        """
        while self._state != ConnectionState.CLOSED:
            frame = await self._push_queue.get()
            try:
                await self.dispatch(frame)
            except Exception:
                logger.exception(f"Error dispatching {frame.post_type} on {self.label}")

    async def dispatch(self, frame: PushFrame) -> BridgeEvent:
        """Classify a push frame and emit it on every matching channel.

        Channels are emitted general first (``notice`` before
        ``notice.group`` before ``notice.group.ban``), each fully awaited
        before the next.
        """
        event = classify(frame, self)
        for channel in event.channels:
            await self._emitter.emit(channel, event)
        return event

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on(self, channel: str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to a channel; returns an unsubscribe function."""
        return self._emitter.on(channel, callback)

    def once(self, channel: str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe for a single delivery."""
        return self._emitter.once(channel, callback)

    def off(self, channel: str, callback: EventCallback) -> None:
        """Remove a subscription."""
        self._emitter.off(channel, callback)

    # ------------------------------------------------------------------
    # Bound actions
    # ------------------------------------------------------------------

    async def send_private_msg(self, user_id: int, content: Sendable) -> dict[str, Any]:
        """Send a private message; returns ``{"message_id": ...}``."""
        return await self.call(
            ActionType.SEND_PRIVATE_MSG,
            {"user_id": user_id, "message": normalize_sendable(content)},
        )

    async def send_group_msg(self, group_id: int, content: Sendable) -> dict[str, Any]:
        """Send a group message; returns ``{"message_id": ...}``."""
        return await self.call(
            ActionType.SEND_GROUP_MSG,
            {"group_id": group_id, "message": normalize_sendable(content)},
        )

    async def recall(self, message_id: int) -> None:
        """Delete a message."""
        await self.call(ActionType.DELETE_MSG, {"message_id": message_id})

    async def get_msg(self, message_id: int) -> dict[str, Any]:
        """Fetch a message by id."""
        return await self.call(ActionType.GET_MSG, {"message_id": message_id})

    async def add_reaction(self, message_id: int, emoji_id: str | int) -> None:
        await self.call(
            ActionType.SET_MSG_EMOJI_LIKE,
            {"message_id": message_id, "emoji_id": str(emoji_id), "set": True},
        )

    async def remove_reaction(self, message_id: int, emoji_id: str | int) -> None:
        await self.call(
            ActionType.SET_MSG_EMOJI_LIKE,
            {"message_id": message_id, "emoji_id": str(emoji_id), "set": False},
        )

    def pick_group(self, group_id: int) -> GroupFacade:
        """Facade for acting on a group."""
        return GroupFacade(self, group_id)

    def pick_friend(self, user_id: int) -> FriendFacade:
        """Facade for acting on a friend."""
        return FriendFacade(self, user_id)

    def __repr__(self) -> str:
        return f"<Connection {self.label} {self._state.value}>"


# Convenience function for testing


async def create_test_connection(
    self_id: int = 1001,
    nickname: str = "bot",
    transport: MockClientTransport | None = None,
) -> tuple[Connection, MockClientTransport]:
    """Create an open, logged-in connection over a mock transport.

    Args:
        self_id: Identity returned by the handshake
        nickname: Nickname returned by the handshake
        transport: Existing mock transport to reuse

    Returns:
        The connection and its mock transport
    """
    transport = transport or create_mock_transport()
    transport.set_response("get_login_info", {"user_id": self_id, "nickname": nickname})

    connection = Connection(transport, name=f"test-{self_id}")
    await connection.open()
    await connection.fetch_login_info()
    return connection, transport
