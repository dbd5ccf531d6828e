"""Inbound wire frames.

The bridge sends two kinds of frames over the same socket:

- Response frames: answer a previously sent action. They carry the
  action's ``echo`` plus a ``retcode`` (0 means success) and ``data``.
- Push frames: server-initiated events. They carry a ``post_type`` and a
  category-specific set of fields, never an ``echo``.

Push frames are modelled as a closed set of variants keyed by ``post_type``.
Unknown categories parse into :class:`UnknownFrame` so nothing is dropped.
All push models keep unknown fields (``extra="allow"``) because the bridge
adds fields freely between releases.

Example (response):
    {"echo": "5f0c...", "status": "ok", "retcode": 0, "data": {"message_id": 42}}

Example (push):
    {"post_type": "notice", "notice_type": "group_ban", "sub_type": "ban",
     "group_id": 123, "user_id": 456, "operator_id": 789, "duration": 600,
     "time": 1718000000, "self_id": 1001}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import MalformedFrameError


class ResponseFrame(BaseModel):
    """Response to an action, matched by ``echo``."""

    model_config = ConfigDict(extra="allow")

    echo: str
    retcode: int = 0
    status: str | None = None
    data: Any = None
    message: str = ""
    wording: str = ""

    @field_validator("echo", mode="before")
    @classmethod
    def _echo_as_str(cls, value: Any) -> Any:
        # Some bridge builds echo numeric tokens back as numbers
        return str(value) if isinstance(value, int) else value

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.retcode == 0

    @property
    def error_message(self) -> str:
        """Best available human-readable failure description."""
        return self.message or self.wording or (self.status or "")


class PushFrame(BaseModel):
    """Base for every server-initiated frame."""

    model_config = ConfigDict(extra="allow")

    post_type: str
    time: int = 0
    self_id: int = 0

    def fields(self) -> dict[str, Any]:
        """All fields, declared and extra, as a plain dict."""
        return self.model_dump()


class MetaEventFrame(PushFrame):
    """Heartbeat and lifecycle frames."""

    meta_event_type: str
    sub_type: str | None = None


class MessageFrame(PushFrame):
    """A received message (private or group)."""

    message_type: str
    sub_type: str | None = None
    message_id: int = 0
    user_id: int = 0
    group_id: int | None = None
    raw_message: str = ""
    message: list[dict[str, Any]] = Field(default_factory=list)
    sender: dict[str, Any] = Field(default_factory=dict)

    @field_validator("message", mode="before")
    @classmethod
    def _string_message_as_text(cls, value: Any) -> Any:
        # message_format=string delivers CQ text instead of an element array
        if isinstance(value, str):
            return [{"type": "text", "data": {"text": value}}]
        return value


class MessageSentFrame(MessageFrame):
    """An echo of a message the logged-in account sent itself."""


class NoticeFrame(PushFrame):
    """A notice; ``notice_type`` vocabulary is inconsistent on the wire."""

    notice_type: str
    sub_type: str | None = None
    user_id: int | None = None
    group_id: int | None = None


class RequestFrame(PushFrame):
    """A friend or group request awaiting approval."""

    request_type: str
    sub_type: str | None = None
    flag: str = ""
    comment: str = ""
    user_id: int = 0
    group_id: int | None = None


class UnknownFrame(PushFrame):
    """A push frame whose ``post_type`` is not recognized."""


PUSH_FRAME_TYPES: dict[str, type[PushFrame]] = {
    "meta_event": MetaEventFrame,
    "message": MessageFrame,
    "message_sent": MessageSentFrame,
    "notice": NoticeFrame,
    "request": RequestFrame,
}

WireFrame = ResponseFrame | PushFrame


def is_response_payload(payload: dict[str, Any]) -> bool:
    """Check if a decoded payload is a response to an action."""
    return "echo" in payload and "retcode" in payload and "post_type" not in payload


def parse_push_frame(payload: dict[str, Any]) -> PushFrame:
    """Validate a push payload into its variant.

    Raises:
        MalformedFrameError: If the payload has no ``post_type`` or does not
            satisfy the variant's required fields.
    """
    post_type = payload.get("post_type")
    if not isinstance(post_type, str) or not post_type:
        raise MalformedFrameError("Push frame has no post_type")

    frame_type = PUSH_FRAME_TYPES.get(post_type, UnknownFrame)
    try:
        return frame_type.model_validate(payload)
    except ValidationError as e:
        raise MalformedFrameError(f"Invalid {post_type} frame: {e}") from e


def parse_response_frame(payload: dict[str, Any]) -> ResponseFrame:
    """Validate a response payload.

    Raises:
        MalformedFrameError: If required response fields are missing or invalid.
    """
    try:
        return ResponseFrame.model_validate(payload)
    except ValidationError as e:
        raise MalformedFrameError(f"Invalid response frame: {e}") from e
