"""Normalized events.

Every push frame becomes one event object with:
- ``path``: the most specific category path (e.g. ``notice.group.ban``)
- a read-only field mapping (event["group_id"] or event.group_id)
- bound actions that capture the owning connection

Events are ephemeral: one is built per frame and handed to every channel
the frame is emitted on.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ..protocol.actions import ActionType
from ..protocol.segment import Sendable, normalize_sendable
from ..protocol.segment import reply as reply_segment
from .facades import FriendFacade, GroupFacade

if TYPE_CHECKING:
    from .connection import Connection


class BridgeEvent(Mapping[str, Any]):
    """A normalized push event."""

    def __init__(
        self,
        path: str,
        fields: Mapping[str, Any],
        connection: Connection | None = None,
    ):
        self._path = path
        self._fields: Mapping[str, Any] = MappingProxyType(dict(fields))
        self._connection = connection

    @property
    def path(self) -> str:
        """Fully qualified category path."""
        return self._path

    @property
    def category(self) -> str:
        """Primary category (first path segment)."""
        return self._path.split(".", 1)[0]

    @property
    def channels(self) -> list[str]:
        """Emission channels, general first (``notice``, ``notice.group``, ...)."""
        parts = self._path.split(".")
        return [".".join(parts[: i + 1]) for i in range(len(parts))]

    @property
    def connection(self) -> Connection | None:
        """The connection this event arrived on."""
        return self._connection

    @property
    def fields(self) -> Mapping[str, Any]:
        """Read-only field mapping."""
        return self._fields

    def to_dict(self) -> dict[str, Any]:
        """Copy of the fields as a plain dict."""
        return dict(self._fields)

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __getattr__(self, name: str) -> Any:
        fields = self.__dict__.get("_fields")
        if fields is not None and name in fields:
            return fields[name]
        raise AttributeError(f"{type(self).__name__} has no field {name!r}")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._path} {dict(self._fields)!r}>"

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise RuntimeError(f"Event {self._path} is not bound to a connection")
        return self._connection


class MetaEvent(BridgeEvent):
    """Heartbeat or lifecycle event."""


class MessageEvent(BridgeEvent):
    """A received message with reply and reaction actions."""

    @property
    def message_id(self) -> int:
        return self._fields.get("message_id", 0)

    async def reply(self, content: Sendable, quote: bool = False) -> dict[str, Any]:
        """Answer in the same chat.

        Args:
            content: Message content
            quote: Prefix a reply marker pointing at this message

        Returns:
            The send result (contains ``message_id``)
        """
        elements = normalize_sendable(content)
        if quote:
            elements = [reply_segment(self.message_id), *elements]
        return await self._send(elements)

    async def _send(self, elements: list[dict[str, Any]]) -> dict[str, Any]:
        # Other chat kinds go through the generic send_msg action
        params: dict[str, Any] = {"message_type": self._fields.get("message_type")}
        for key in ("group_id", "user_id"):
            if self._fields.get(key) is not None:
                params[key] = self._fields[key]
        params["message"] = elements
        return await self._require_connection().call(ActionType.SEND_MSG, params)

    async def recall(self) -> None:
        """Delete this message."""
        await self._require_connection().recall(self.message_id)

    async def add_reaction(self, emoji_id: str | int) -> None:
        """React to this message with an emoji."""
        await self._require_connection().add_reaction(self.message_id, emoji_id)

    async def remove_reaction(self, emoji_id: str | int) -> None:
        """Withdraw an emoji reaction."""
        await self._require_connection().remove_reaction(self.message_id, emoji_id)


class GroupMessageEvent(MessageEvent):
    """A group message; ``group`` exposes group management actions."""

    @property
    def group(self) -> GroupFacade:
        return GroupFacade(
            self._require_connection(),
            self._fields["group_id"],
            self._fields.get("group_name", ""),
        )

    async def _send(self, elements: list[dict[str, Any]]) -> dict[str, Any]:
        return await self._require_connection().send_group_msg(self._fields["group_id"], elements)


class PrivateMessageEvent(MessageEvent):
    """A private message; ``friend`` exposes friend actions."""

    @property
    def friend(self) -> FriendFacade:
        sender = self._fields.get("sender") or {}
        return FriendFacade(
            self._require_connection(),
            self._fields["user_id"],
            sender.get("nickname", ""),
        )

    async def _send(self, elements: list[dict[str, Any]]) -> dict[str, Any]:
        return await self._require_connection().send_private_msg(self._fields["user_id"], elements)


class MessageSentEvent(BridgeEvent):
    """Echo of a message the logged-in account sent."""


class NoticeEvent(BridgeEvent):
    """A notice after subtype remapping."""


class RequestEvent(BridgeEvent):
    """A pending friend or group request."""

    async def approve(self, remark: str = "") -> None:
        """Accept the request."""
        await self._answer(True, remark)

    async def reject(self, reason: str | None = None) -> None:
        """Decline the request; ``reason`` is only sent for group requests."""
        await self._answer(False, reason or "")

    async def _answer(self, approve: bool, text: str) -> None:
        connection = self._require_connection()
        flag = self._fields.get("flag", "")

        if self._fields.get("request_type") == "group":
            params: dict[str, Any] = {
                "flag": flag,
                "sub_type": self._fields.get("sub_type") or "add",
                "approve": approve,
            }
            if not approve and text:
                params["reason"] = text
            await connection.call(ActionType.SET_GROUP_ADD_REQUEST, params)
            return

        params = {"flag": flag, "approve": approve}
        if approve and text:
            params["remark"] = text
        await connection.call(ActionType.SET_FRIEND_ADD_REQUEST, params)


class UnrecognizedEvent(BridgeEvent):
    """A frame with an unknown ``post_type``, forwarded with its raw fields."""

    @property
    def channels(self) -> list[str]:
        # The raw post_type is one opaque channel name, even if it contains dots
        return [self._path]
