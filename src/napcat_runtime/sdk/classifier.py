"""Push frame classification.

Turns a validated push frame into a :class:`BridgeEvent` with a dotted
category path. The path determines the channels the event is emitted on:
general category first, then every more specific prefix.

Notice frames need remapping because the bridge reports most notices with
a flat ``notice_type`` (``group_ban``, ``friend_recall``) while handlers
subscribe to ``notice.<scope>.<sub_type>``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..protocol.frames import (
    MessageFrame,
    MessageSentFrame,
    MetaEventFrame,
    NoticeFrame,
    PushFrame,
    RequestFrame,
)
from ..protocol.segment import flatten_elements
from .events import (
    BridgeEvent,
    GroupMessageEvent,
    MessageEvent,
    MessageSentEvent,
    MetaEvent,
    NoticeEvent,
    PrivateMessageEvent,
    RequestEvent,
    UnrecognizedEvent,
)

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)


# Wire notice_type -> canonical (notice_type, sub_type)
NOTICE_TYPE_MAP: dict[str, tuple[str, str]] = {
    "friend_add": ("friend", "increase"),
    "friend_recall": ("friend", "recall"),
    "offline_file": ("friend", "offline_file"),
    "client_status": ("client", "status"),
    "group_admin": ("group", "admin"),
    "group_ban": ("group", "ban"),
    "group_card": ("group", "card"),
    "group_upload": ("group", "upload"),
    "group_decrease": ("group", "decrease"),
    "group_increase": ("group", "increase"),
    "group_msg_emoji_like": ("group", "reaction"),
    "essence": ("group", "essence"),
    "group_recall": ("group", "recall"),
}

# notice_type == "notify": wire sub_type -> canonical (notice_type, sub_type)
NOTIFY_SUB_TYPE_MAP: dict[str, tuple[str, str]] = {
    "input_status": ("friend", "input"),
    "profile_like": ("friend", "like"),
    "title": ("group", "title"),
}

# Canonical group notices whose wire sub_type describes the action taken
ACTION_SUB_TYPES = frozenset({"admin", "ban", "increase", "decrease", "essence"})


def remap_notice(fields: dict[str, Any]) -> dict[str, Any]:
    """Rewrite a notice's type fields into canonical form.

    The wire ``notice_type`` is kept under ``original_notice_type``. When a
    wire ``sub_type`` is replaced it is kept under ``original_sub_type``. For
    group notices where the wire ``sub_type`` names the action (``set``/
    ``unset``, ``ban``/``lift_ban``...) it is also mirrored into
    ``action_type`` unless already present, even when it equals the
    canonical sub_type.

    Args:
        fields: Raw notice fields

    Returns:
        A new field dict
    """
    result = dict(fields)
    wire_type = fields.get("notice_type", "")
    wire_sub = fields.get("sub_type")
    result["original_notice_type"] = wire_type

    if wire_type == "notify":
        if wire_sub == "poke":
            canonical = ("group", "poke") if fields.get("group_id") else ("friend", "poke")
        else:
            canonical = NOTIFY_SUB_TYPE_MAP.get(wire_sub or "")
    else:
        canonical = NOTICE_TYPE_MAP.get(wire_type)

    if canonical is None:
        return result

    notice_type, sub_type = canonical
    result["notice_type"] = notice_type
    result["sub_type"] = sub_type

    if wire_sub and wire_sub != sub_type:
        result["original_sub_type"] = wire_sub
    if wire_sub and notice_type == "group" and sub_type in ACTION_SUB_TYPES:
        result.setdefault("action_type", wire_sub)

    return result


def _join(*parts: str | None) -> str:
    return ".".join(part for part in parts if part)


def _message_fields(frame: MessageFrame) -> dict[str, Any]:
    fields = frame.fields()
    fields["message"] = flatten_elements(frame.message)
    return fields


def _request_path(frame: RequestFrame) -> str:
    # Friend requests carry no meaningful sub_type
    if frame.request_type == "group":
        return _join("request", "group", frame.sub_type)
    return _join("request", frame.request_type)


def classify(frame: PushFrame, connection: Connection | None = None) -> BridgeEvent:
    """Build the normalized event for a push frame.

    Unrecognized categories produce an :class:`UnrecognizedEvent` whose path
    is the raw ``post_type``, carrying every field unchanged.

    Args:
        frame: Validated push frame
        connection: Connection the frame arrived on; bound into event actions

    Returns:
        The normalized event
    """
    match frame:
        case MetaEventFrame():
            path = _join("meta_event", frame.meta_event_type, frame.sub_type)
            return MetaEvent(path, frame.fields(), connection)

        # MessageSentFrame subclasses MessageFrame, so it must match first
        case MessageSentFrame():
            path = _join("message_sent", frame.message_type, frame.sub_type)
            return MessageSentEvent(path, _message_fields(frame), connection)

        case MessageFrame(message_type="group"):
            path = _join("message", "group", frame.sub_type)
            return GroupMessageEvent(path, _message_fields(frame), connection)

        case MessageFrame(message_type="private"):
            path = _join("message", "private", frame.sub_type)
            return PrivateMessageEvent(path, _message_fields(frame), connection)

        case MessageFrame():
            path = _join("message", frame.message_type, frame.sub_type)
            return MessageEvent(path, _message_fields(frame), connection)

        case NoticeFrame():
            fields = remap_notice(frame.fields())
            path = _join("notice", fields.get("notice_type"), fields.get("sub_type"))
            return NoticeEvent(path, fields, connection)

        case RequestFrame():
            return RequestEvent(_request_path(frame), frame.fields(), connection)

        case _:
            logger.debug(f"Forwarding unrecognized post_type {frame.post_type!r}")
            return UnrecognizedEvent(frame.post_type, frame.fields(), connection)
