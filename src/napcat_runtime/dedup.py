"""Event deduplication across connections.

When several bot accounts share a group, every one of them receives the
same group message or notice. The deduplicator derives a stable key per
physical occurrence so a subscription handles it only once.

Key policy:

| Category       | Key components                                              |
|----------------|-------------------------------------------------------------|
| group message  | group id, sender, timestamp, md5(raw_message)               |
| group notice   | category, group id, sender, operator, target, subtype,      |
|                | action type, duration, timestamp                            |
| request        | category, sender, group id, timestamp, md5(comment)         |
| anything else  | empty key: never deduplicated                               |

Memory only, bounded, first-in first-out eviction.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .utils import md5

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000


def _field(event: Mapping[str, Any], *names: str) -> str:
    for name in names:
        value = event.get(name)
        if value is not None:
            return str(value)
    return ""


def _type_key(event: Mapping[str, Any]) -> str:
    post_type = event.get("post_type")

    if post_type == "message":
        return f"msg:{event.get('message_type')}"

    if post_type == "request":
        if event.get("request_type") == "friend":
            return "req:friend"
        return f"req:group:{event.get('sub_type') or 'unknown'}"

    if post_type == "notice":
        if event.get("notice_type") == "group":
            return f"notice:group:{event.get('sub_type')}"
        return f"notice:{event.get('notice_type')}:{event.get('sub_type')}"

    return ""


def event_key(event: Mapping[str, Any]) -> str:
    """Unscoped dedup key for an event; empty when the category is not deduplicated."""
    type_key = _type_key(event)

    if type_key == "msg:group":
        content_hash = md5(_field(event, "raw_message"))
        parts = [_field(event, "group_id"), _field(event, "user_id"), _field(event, "time")]
        return ":".join(["msg:group", *parts, content_hash])

    if type_key.startswith("notice:group:"):
        parts = [
            _field(event, "group_id"),
            _field(event, "user_id"),
            _field(event, "operator_id"),
            _field(event, "target_id"),
            _field(event, "sub_type"),
            _field(event, "action_type", "actions_type"),
            _field(event, "duration"),
            _field(event, "time"),
        ]
        return ":".join([type_key, *parts])

    if type_key.startswith("req:"):
        comment = _field(event, "comment")
        parts = [_field(event, "user_id"), _field(event, "group_id"), _field(event, "time")]
        return ":".join([type_key, *parts, md5(comment) if comment else ""])

    return ""


class Deduplicator:
    """Bounded set of processed event keys.

    Example:
        dedup = Deduplicator()
        if not dedup.is_processed(event, scope):
            dedup.mark_processed(event, scope)
            await handler(event)
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        # dict preserves insertion order, which gives FIFO eviction
        self._keys: dict[str, None] = {}

    def key(self, event: Mapping[str, Any], scope: str | None = None) -> str:
        """Scoped key for an event; empty when the event is never deduplicated."""
        base = event_key(event)
        if not base:
            return ""
        return f"{base}:{scope}" if scope else base

    def is_processed(self, event: Mapping[str, Any], scope: str | None = None) -> bool:
        """Whether this occurrence was already marked under ``scope``."""
        key = self.key(event, scope)
        return bool(key) and key in self._keys

    def mark_processed(self, event: Mapping[str, Any], scope: str | None = None) -> None:
        """Record this occurrence under ``scope``."""
        key = self.key(event, scope)
        if not key or key in self._keys:
            return

        if len(self._keys) >= self.capacity:
            oldest = next(iter(self._keys))
            del self._keys[oldest]
            logger.debug(f"Evicted dedup key {oldest}")

        self._keys[key] = None

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def clear(self) -> None:
        """Forget every key."""
        self._keys.clear()
