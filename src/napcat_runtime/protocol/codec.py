"""JSON wire codec.

``encode`` produces the bytes for one outbound action together with the
token it was tagged with. ``decode`` never raises: undecodable input is
logged and reported as ``None`` so the receive loop keeps running.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, NamedTuple

from ..errors import MalformedFrameError
from .actions import ActionFrame, ActionType, new_echo
from .frames import WireFrame, is_response_payload, parse_push_frame, parse_response_frame

logger = logging.getLogger(__name__)

_PREVIEW_LEN = 120


class EncodedCall(NamedTuple):
    """An encoded action and the token it carries."""

    echo: str
    data: bytes


def encode(
    action: str | ActionType,
    params: dict[str, Any] | None = None,
    *,
    token_factory: Callable[[], str] = new_echo,
) -> EncodedCall:
    """Encode an action with a fresh correlation token.

    Args:
        action: Action name
        params: Action parameters
        token_factory: Source of correlation tokens

    Returns:
        The token and the serialized frame
    """
    frame = ActionFrame.create(action, params, echo=token_factory())
    return EncodedCall(frame.echo, frame.model_dump_json().encode("utf-8"))


def decode_strict(raw: str | bytes) -> WireFrame:
    """Decode one inbound message.

    Raises:
        MalformedFrameError: If the data is not a valid frame
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedFrameError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedFrameError(f"Expected a JSON object, got {type(payload).__name__}")

    if is_response_payload(payload):
        return parse_response_frame(payload)
    if "post_type" in payload:
        return parse_push_frame(payload)
    raise MalformedFrameError("Frame is neither a response nor a push event")


def decode(raw: str | bytes) -> WireFrame | None:
    """Decode one inbound message, logging and dropping malformed input."""
    try:
        return decode_strict(raw)
    except MalformedFrameError as e:
        logger.warning(f"Dropping malformed frame: {e} (data: {raw[:_PREVIEW_LEN]!r})")
        return None
