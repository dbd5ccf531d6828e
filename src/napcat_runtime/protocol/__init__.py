"""OneBot wire protocol layer.

Defines the frames exchanged with the bridge and the codec between them
and raw socket messages.

Key concepts:
- Actions: client → bridge requests tagged with an ``echo`` token
- Responses: bridge → client answers carrying the same ``echo``
- Push frames: bridge → client events keyed by ``post_type``
"""

from . import segment
from .actions import ActionFrame, ActionType, new_echo
from .codec import EncodedCall, decode, decode_strict, encode
from .frames import (
    PUSH_FRAME_TYPES,
    MessageFrame,
    MessageSentFrame,
    MetaEventFrame,
    NoticeFrame,
    PushFrame,
    RequestFrame,
    ResponseFrame,
    UnknownFrame,
    WireFrame,
    parse_push_frame,
)

__all__ = [
    "ActionFrame",
    "ActionType",
    "new_echo",
    "EncodedCall",
    "encode",
    "decode",
    "decode_strict",
    "PUSH_FRAME_TYPES",
    "PushFrame",
    "MetaEventFrame",
    "MessageFrame",
    "MessageSentFrame",
    "NoticeFrame",
    "RequestFrame",
    "UnknownFrame",
    "ResponseFrame",
    "WireFrame",
    "parse_push_frame",
    "segment",
]
