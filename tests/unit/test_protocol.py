"""Unit tests for the wire protocol layer.

Covers:
- Action encoding with correlation tokens
- Inbound frame decoding (responses, push variants, malformed input)
- Message element builders and shape conversions
"""

from __future__ import annotations

import json
import logging

import pytest

from napcat_runtime.errors import MalformedFrameError
from napcat_runtime.protocol import (
    ActionFrame,
    ActionType,
    MessageFrame,
    MessageSentFrame,
    NoticeFrame,
    ResponseFrame,
    UnknownFrame,
    decode,
    decode_strict,
    encode,
    parse_push_frame,
    segment,
)

# =============================================================================
# Encoding Tests
# =============================================================================


class TestEncode:
    """Tests for outbound action encoding."""

    def test_encode_wire_shape(self) -> None:
        """Encoded frame has echo, action and params."""
        encoded = encode("send_group_msg", {"group_id": 1}, token_factory=lambda: "tok-1")
        data = json.loads(encoded.data)

        assert encoded.echo == "tok-1"
        assert data == {"echo": "tok-1", "action": "send_group_msg", "params": {"group_id": 1}}

    def test_encode_action_type(self) -> None:
        """ActionType members encode as their wire names."""
        encoded = encode(ActionType.GET_LOGIN_INFO)
        data = json.loads(encoded.data)

        assert data["action"] == "get_login_info"
        assert data["params"] == {}

    def test_encode_fresh_tokens(self) -> None:
        """Each encode uses a new token by default."""
        tokens = {encode("get_login_info").echo for _ in range(50)}
        assert len(tokens) == 50

    def test_action_frame_create(self) -> None:
        """ActionFrame.create fills defaults."""
        frame = ActionFrame.create(ActionType.DELETE_MSG, {"message_id": 5}, echo="e")

        assert frame.action == "delete_msg"
        assert frame.echo == "e"
        assert frame.params == {"message_id": 5}


# =============================================================================
# Decoding Tests
# =============================================================================


class TestDecode:
    """Tests for inbound frame decoding."""

    def test_decode_response(self) -> None:
        """A frame with echo and retcode is a response."""
        raw = json.dumps({"echo": "abc", "status": "ok", "retcode": 0, "data": {"x": 1}})
        frame = decode(raw)

        assert isinstance(frame, ResponseFrame)
        assert frame.echo == "abc"
        assert frame.ok
        assert frame.data == {"x": 1}

    def test_decode_response_numeric_echo(self) -> None:
        """Numeric echo tokens are normalized to strings."""
        frame = decode(json.dumps({"echo": 42, "retcode": 0}))

        assert isinstance(frame, ResponseFrame)
        assert frame.echo == "42"

    def test_decode_failed_response(self) -> None:
        """Non-zero retcode is not ok and exposes a message."""
        frame = decode_strict(
            json.dumps({"echo": "a", "retcode": 1400, "status": "failed", "wording": "bad"})
        )

        assert isinstance(frame, ResponseFrame)
        assert not frame.ok
        assert frame.error_message == "bad"

    def test_decode_group_message(self) -> None:
        """Message frames parse into MessageFrame with extra fields kept."""
        raw = json.dumps(
            {
                "post_type": "message",
                "message_type": "group",
                "sub_type": "normal",
                "group_id": 100,
                "user_id": 200,
                "message_id": 7,
                "raw_message": "hi",
                "message": [{"type": "text", "data": {"text": "hi"}}],
                "font": 14,
                "time": 1,
                "self_id": 1001,
            }
        )
        frame = decode(raw)

        assert isinstance(frame, MessageFrame)
        assert frame.group_id == 100
        assert frame.fields()["font"] == 14

    def test_decode_string_message(self) -> None:
        """A string message body becomes one text element."""
        frame = parse_push_frame(
            {"post_type": "message", "message_type": "private", "message": "hello"}
        )

        assert isinstance(frame, MessageFrame)
        assert frame.message == [{"type": "text", "data": {"text": "hello"}}]

    def test_decode_message_sent(self) -> None:
        """message_sent frames get their own variant."""
        frame = parse_push_frame({"post_type": "message_sent", "message_type": "group"})
        assert isinstance(frame, MessageSentFrame)

    def test_decode_notice(self) -> None:
        frame = parse_push_frame({"post_type": "notice", "notice_type": "group_ban"})
        assert isinstance(frame, NoticeFrame)

    def test_decode_unknown_post_type(self) -> None:
        """Unknown categories are kept, not dropped."""
        frame = decode(json.dumps({"post_type": "custom", "foo": "bar"}))

        assert isinstance(frame, UnknownFrame)
        assert frame.fields()["foo"] == "bar"

    def test_decode_invalid_json_returns_none(self, caplog: pytest.LogCaptureFixture) -> None:
        """Malformed input is logged and dropped."""
        with caplog.at_level(logging.WARNING):
            assert decode("{not json") is None

        assert "Dropping malformed frame" in caplog.text

    @pytest.mark.parametrize(
        "raw",
        [
            "[1, 2, 3]",
            json.dumps({"status": "ok"}),
            json.dumps({"post_type": "notice"}),
            json.dumps({"post_type": ""}),
        ],
    )
    def test_decode_malformed_returns_none(self, raw: str) -> None:
        """Non-objects, unclassifiable objects and invalid variants decode to None."""
        assert decode(raw) is None

    def test_decode_strict_raises(self) -> None:
        """Strict decoding raises MalformedFrameError."""
        with pytest.raises(MalformedFrameError):
            decode_strict("nope")

    def test_malformed_error_is_value_error(self) -> None:
        assert issubclass(MalformedFrameError, ValueError)


# =============================================================================
# Segment Tests
# =============================================================================


class TestSegment:
    """Tests for message element helpers."""

    def test_builders(self) -> None:
        assert segment.text("hi") == {"type": "text", "data": {"text": "hi"}}
        assert segment.at(123) == {"type": "at", "data": {"qq": "123"}}
        assert segment.reply(9) == {"type": "reply", "data": {"id": "9"}}
        assert segment.image("a.png") == {"type": "image", "data": {"file": "a.png"}}

    def test_normalize_string(self) -> None:
        assert segment.normalize_sendable("hi") == [segment.text("hi")]

    def test_normalize_flat_element(self) -> None:
        """Flat elements are wrapped into wire shape."""
        result = segment.normalize_sendable({"type": "face", "id": 1})
        assert result == [{"type": "face", "data": {"id": 1}}]

    def test_normalize_mixed_list(self) -> None:
        """Lists may mix strings, flat and wire elements, nested."""
        content = ["a", segment.at(1), [{"type": "text", "text": "b"}]]
        result = segment.normalize_sendable(content)

        assert result == [
            segment.text("a"),
            segment.at(1),
            segment.text("b"),
        ]

    def test_flatten_elements(self) -> None:
        """Wire elements become flat records."""
        flat = segment.flatten_elements(
            [segment.text("hi"), {"type": "image", "data": {"file": "x", "url": "u"}}]
        )

        assert flat == [
            {"type": "text", "text": "hi"},
            {"type": "image", "file": "x", "url": "u"},
        ]
