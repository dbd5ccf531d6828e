"""Outbound action frames.

Actions are requests from the client to the bridge. Each action carries a
unique ``echo`` token that the bridge copies into its response frame, which
is how responses are matched to callers over a single multiplexed socket.

Example:
    {
        "echo": "5f0c9a4e2b7d4c1f8e3a6b9d0c2e4f6a",
        "action": "send_group_msg",
        "params": {"group_id": 123456, "message": [...]}
    }
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def new_echo() -> str:
    """Generate a fresh correlation token."""
    return uuid.uuid4().hex


class ActionType(str, Enum):
    """Actions the runtime issues on its own behalf."""

    # Account
    GET_LOGIN_INFO = "get_login_info"

    # Messages
    SEND_PRIVATE_MSG = "send_private_msg"
    SEND_GROUP_MSG = "send_group_msg"
    SEND_MSG = "send_msg"
    DELETE_MSG = "delete_msg"
    GET_MSG = "get_msg"
    SET_MSG_EMOJI_LIKE = "set_msg_emoji_like"

    # Group management
    SET_GROUP_BAN = "set_group_ban"
    SET_GROUP_KICK = "set_group_kick"
    SET_GROUP_NAME = "set_group_name"
    SET_GROUP_CARD = "set_group_card"
    SET_ESSENCE_MSG = "set_essence_msg"
    DELETE_ESSENCE_MSG = "delete_essence_msg"

    # Friends
    SEND_LIKE = "send_like"
    DELETE_FRIEND = "delete_friend"

    # Requests
    SET_FRIEND_ADD_REQUEST = "set_friend_add_request"
    SET_GROUP_ADD_REQUEST = "set_group_add_request"


class ActionFrame(BaseModel):
    """An action sent from client to bridge."""

    echo: str = Field(default_factory=new_echo)
    action: str
    params: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(
        cls,
        action: str | ActionType,
        params: dict[str, Any] | None = None,
        echo: str | None = None,
    ) -> ActionFrame:
        """Factory method for creating action frames."""
        return cls(
            echo=echo or new_echo(),
            action=action.value if isinstance(action, ActionType) else action,
            params=params or {},
        )
