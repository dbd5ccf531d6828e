"""Per-connection event emitter.

Each Connection owns one emitter. Channels are dotted category paths
(``message.group``) plus the lifecycle channels ``ws.open`` and ``ws.close``.
Handlers may be plain functions or coroutines; they run one after another
in subscription order and a failing handler never stops the others.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

# Type for event callbacks
EventCallback = Callable[[Any], Awaitable[None] | None]


class EventEmitter:
    """Channel-keyed pub/sub with synchronous unsubscribe."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[EventCallback]] = {}

    def on(self, channel: str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to a channel.

        Args:
            channel: Channel name (e.g., "notice.group.ban")
            callback: Function or coroutine function called with the event

        Returns:
            Unsubscribe function
        """
        self._subscriptions.setdefault(channel, []).append(callback)
        logger.debug(f"Registered handler on {channel}")

        def unsubscribe() -> None:
            self.off(channel, callback)

        return unsubscribe

    def once(self, channel: str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe for a single delivery."""

        async def wrapper(event: Any) -> None:
            self.off(channel, wrapper)
            result = callback(event)
            if inspect.isawaitable(result):
                await result

        return self.on(channel, wrapper)

    def off(self, channel: str, callback: EventCallback) -> None:
        """Remove a callback; unknown callbacks are ignored."""
        callbacks = self._subscriptions.get(channel)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)
            logger.debug(f"Unregistered handler on {channel}")
            if not callbacks:
                del self._subscriptions[channel]

    async def emit(self, channel: str, event: Any) -> None:
        """Deliver an event to every handler on ``channel``."""
        # Copy to avoid mutation during iteration
        for callback in list(self._subscriptions.get(channel, [])):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Error in handler for {channel}")

    def listener_count(self, channel: str) -> int:
        """Number of handlers subscribed to ``channel``."""
        return len(self._subscriptions.get(channel, []))

    def channels(self) -> list[str]:
        """Channels with at least one handler."""
        return list(self._subscriptions)

    def clear(self) -> None:
        """Remove every subscription."""
        self._subscriptions = {}
