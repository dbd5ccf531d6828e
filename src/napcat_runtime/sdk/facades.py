"""Bound action facades.

A facade captures a connection and the identifiers needed to act on one
group or one friend, so handlers can write ``await event.group.ban(uid, 600)``
without looking anything up again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..protocol.actions import ActionType
from ..protocol.segment import Sendable

if TYPE_CHECKING:
    from .connection import Connection


@dataclass(frozen=True)
class GroupFacade:
    """Actions on one group through one connection."""

    connection: Connection
    group_id: int
    group_name: str = ""

    async def send(self, content: Sendable) -> dict[str, Any]:
        """Send a message to the group."""
        return await self.connection.send_group_msg(self.group_id, content)

    async def ban(self, user_id: int, duration: int = 600) -> None:
        """Mute a member; ``duration=0`` lifts the mute."""
        await self.connection.call(
            ActionType.SET_GROUP_BAN,
            {"group_id": self.group_id, "user_id": user_id, "duration": duration},
        )

    async def kick(self, user_id: int, reject_add_request: bool = False) -> None:
        """Remove a member from the group."""
        await self.connection.call(
            ActionType.SET_GROUP_KICK,
            {
                "group_id": self.group_id,
                "user_id": user_id,
                "reject_add_request": reject_add_request,
            },
        )

    async def rename(self, name: str) -> None:
        """Change the group name."""
        await self.connection.call(
            ActionType.SET_GROUP_NAME, {"group_id": self.group_id, "group_name": name}
        )

    async def set_card(self, user_id: int, card: str) -> None:
        """Change a member's group card (display name)."""
        await self.connection.call(
            ActionType.SET_GROUP_CARD,
            {"group_id": self.group_id, "user_id": user_id, "card": card},
        )

    async def recall(self, message_id: int) -> None:
        """Delete a message in the group."""
        await self.connection.recall(message_id)

    async def set_essence(self, message_id: int) -> None:
        """Mark a message as essence."""
        await self.connection.call(ActionType.SET_ESSENCE_MSG, {"message_id": message_id})

    async def remove_essence(self, message_id: int) -> None:
        """Remove a message's essence mark."""
        await self.connection.call(ActionType.DELETE_ESSENCE_MSG, {"message_id": message_id})


@dataclass(frozen=True)
class FriendFacade:
    """Actions on one friend through one connection."""

    connection: Connection
    user_id: int
    nickname: str = ""

    async def send(self, content: Sendable) -> dict[str, Any]:
        """Send a private message."""
        return await self.connection.send_private_msg(self.user_id, content)

    async def like(self, times: int = 1) -> None:
        """Send profile likes."""
        await self.connection.call(ActionType.SEND_LIKE, {"user_id": self.user_id, "times": times})

    async def delete(self) -> None:
        """Remove the friend."""
        await self.connection.call(ActionType.DELETE_FRIEND, {"user_id": self.user_id})
