"""Unit tests for the event deduplicator."""

from __future__ import annotations

from typing import Any

import pytest

from napcat_runtime.dedup import Deduplicator, event_key
from napcat_runtime.utils import md5


def group_message(n: int = 0, **overrides: Any) -> dict[str, Any]:
    payload = {
        "post_type": "message",
        "message_type": "group",
        "group_id": 500,
        "user_id": 42,
        "time": 1718000000 + n,
        "raw_message": f"message {n}",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Key Tests
# =============================================================================


class TestEventKey:
    """Tests for key derivation."""

    def test_group_message_key(self) -> None:
        key = event_key(group_message())
        assert key == f"msg:group:500:42:1718000000:{md5('message 0')}"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("group_id", 501),
            ("user_id", 43),
            ("time", 1),
            ("raw_message", "other"),
        ],
    )
    def test_each_field_changes_key(self, field: str, value: Any) -> None:
        """Group id, sender, timestamp and content all distinguish occurrences."""
        assert event_key(group_message(**{field: value})) != event_key(group_message())

    def test_other_fields_do_not_change_key(self) -> None:
        """self_id and message_id differ per receiving bot and are ignored."""
        first = group_message(self_id=1001, message_id=1)
        second = group_message(self_id=1002, message_id=2)
        assert event_key(first) == event_key(second)

    def test_group_notice_key(self) -> None:
        key = event_key(
            {
                "post_type": "notice",
                "notice_type": "group",
                "sub_type": "ban",
                "group_id": 1,
                "user_id": 2,
                "operator_id": 3,
                "action_type": "ban",
                "duration": 60,
                "time": 10,
            }
        )
        assert key == "notice:group:ban:1:2:3::ban:ban:60:10"

    def test_request_key(self) -> None:
        key = event_key(
            {
                "post_type": "request",
                "request_type": "group",
                "sub_type": "add",
                "user_id": 2,
                "group_id": 1,
                "time": 10,
                "comment": "let me in",
            }
        )
        assert key == f"req:group:add:2:1:10:{md5('let me in')}"

    @pytest.mark.parametrize(
        "event",
        [
            {"post_type": "message", "message_type": "private", "user_id": 1},
            {"post_type": "notice", "notice_type": "friend", "sub_type": "recall"},
            {"post_type": "meta_event", "meta_event_type": "heartbeat"},
        ],
    )
    def test_not_deduplicated(self, event: dict[str, Any]) -> None:
        assert event_key(event) == ""


# =============================================================================
# Deduplicator Tests
# =============================================================================


class TestDeduplicator:
    """Tests for the bounded processed-key set."""

    def test_mark_and_check(self) -> None:
        dedup = Deduplicator()
        event = group_message()

        assert not dedup.is_processed(event, "s")
        dedup.mark_processed(event, "s")
        assert dedup.is_processed(event, "s")

    def test_same_occurrence_from_another_bot(self) -> None:
        """A copy received by a second bot counts as processed."""
        dedup = Deduplicator()
        dedup.mark_processed(group_message(self_id=1001, message_id=1), "s")

        assert dedup.is_processed(group_message(self_id=1002, message_id=9), "s")
        assert not dedup.is_processed(group_message(raw_message="edited"), "s")

    def test_scopes_are_independent(self) -> None:
        """Two subscriptions each handle the same occurrence once."""
        dedup = Deduplicator()
        event = group_message()

        dedup.mark_processed(event, "plugin-a")

        assert not dedup.is_processed(event, "plugin-b")

    def test_empty_key_never_processed(self) -> None:
        dedup = Deduplicator()
        event = {"post_type": "message", "message_type": "private", "user_id": 1}

        dedup.mark_processed(event, "s")

        assert not dedup.is_processed(event, "s")
        assert len(dedup) == 0

    def test_fifo_eviction(self) -> None:
        """Past capacity the oldest key goes first."""
        dedup = Deduplicator(capacity=1000)
        for n in range(1001):
            dedup.mark_processed(group_message(n))

        assert len(dedup) == 1000
        assert not dedup.is_processed(group_message(0))
        assert all(dedup.is_processed(group_message(n)) for n in range(2, 1001))

    def test_marking_twice_keeps_one_entry(self) -> None:
        dedup = Deduplicator(capacity=2)
        dedup.mark_processed(group_message(0))
        dedup.mark_processed(group_message(0))
        dedup.mark_processed(group_message(1))

        assert dedup.is_processed(group_message(0))
        assert len(dedup) == 2

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ValueError):
            Deduplicator(capacity=0)

    def test_clear(self) -> None:
        dedup = Deduplicator()
        dedup.mark_processed(group_message())
        dedup.clear()

        assert len(dedup) == 0
