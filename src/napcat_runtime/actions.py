"""Operator actions.

Broadcast helpers for notifying owners, admins, friends and groups through
one connection, plus a wrapper that turns a failing command into a chat
reply instead of a log line nobody reads.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any

from .config import BotConfig, Principal, user_id_of
from .protocol.segment import Sendable
from .utils import stringify_error

if TYPE_CHECKING:
    from .sdk.connection import Connection
    from .sdk.events import MessageEvent

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 1.0


def is_bot(connection: Connection, principal: Principal) -> bool:
    """Whether the principal is the connection's own account."""
    return connection.self_id is not None and user_id_of(principal) == connection.self_id


def _can_send(connection: Connection, message: Sendable | None) -> bool:
    if not connection.is_open:
        logger.error(f"Cannot send: connection {connection.label} is not open")
        return False
    if not message:
        logger.warning("Refusing to send an empty message")
        return False
    return True


async def notice_groups(
    connection: Connection,
    group_ids: Iterable[int],
    message: Sendable | None,
    delay: float = DEFAULT_DELAY,
) -> None:
    """Send the same message to several groups, pausing between sends."""
    if message is None or not _can_send(connection, message):
        return
    for group_id in group_ids:
        await connection.send_group_msg(group_id, message)
        await asyncio.sleep(delay)


async def notice_friends(
    connection: Connection,
    user_ids: Iterable[int],
    message: Sendable | None,
    delay: float = DEFAULT_DELAY,
) -> None:
    """Send the same private message to several users, pausing between sends."""
    if message is None or not _can_send(connection, message):
        return
    for user_id in user_ids:
        await connection.send_private_msg(user_id, message)
        await asyncio.sleep(delay)


async def notice_owners(
    connection: Connection,
    config: BotConfig,
    message: Sendable | None,
    delay: float = DEFAULT_DELAY,
) -> None:
    await notice_friends(connection, config.owners, message, delay)


async def notice_admins(
    connection: Connection,
    config: BotConfig,
    message: Sendable | None,
    delay: float = DEFAULT_DELAY,
) -> None:
    await notice_friends(connection, config.admins, message, delay)


async def notice_main_owner(
    connection: Connection,
    config: BotConfig,
    message: Sendable | None,
) -> None:
    """Send a private message to the first configured owner.

    Raises:
        ValueError: If no owner is configured
    """
    if message is None or not _can_send(connection, message):
        return
    if config.main_owner is None:
        raise ValueError("No owner configured")
    await connection.send_private_msg(config.main_owner, message)


def _default_error_message(error: str) -> str:
    return f"Command failed:\n\n{error}"


async def run_with_error_handler(
    connection: Connection,
    config: BotConfig,
    fn: Callable[[], Awaitable[Any] | Any],
    event: MessageEvent | None = None,
    message: Sendable | Callable[[str], Sendable] = _default_error_message,
) -> Any:
    """Run ``fn`` and report a failure in chat.

    With an event the error is sent as a reply; without one the main owner
    is told. Returns ``fn``'s result, or None if it failed.
    """
    try:
        result = fn()
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        logger.exception("Command failed")
        text = message(stringify_error(e)) if callable(message) else message

        try:
            if event is not None:
                await event.reply(text)
            else:
                await notice_main_owner(connection, config, text)
        except Exception as report_error:
            logger.error(f"Could not report failure: {report_error}")
        return None
