"""Helpers for plugin authors."""

from __future__ import annotations

import hashlib
import shlex
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

# Either a message event (anything with a "message" field) or its element list
HasMessage = Mapping[str, Any] | Iterable[Mapping[str, Any]]


def _elements(source: HasMessage) -> list[Mapping[str, Any]]:
    if isinstance(source, Mapping):
        return list(source.get("message") or [])
    return list(source)


def text(source: HasMessage, trim: bool = True) -> str:
    """Concatenate the text elements of a message.

    Args:
        source: A message event or a list of flat elements
        trim: Strip whitespace from each text element before joining
    """
    parts = [str(el.get("text", "")) for el in _elements(source) if el.get("type") == "text"]
    if trim:
        parts = [part.strip() for part in parts]
    return "".join(parts)


def find(source: HasMessage, element_type: str) -> Mapping[str, Any] | None:
    """First element of ``element_type``, or None."""
    for element in _elements(source):
        if element.get("type") == element_type:
            return element
    return None


def filter_elements(source: HasMessage, element_type: str) -> list[Mapping[str, Any]]:
    """Every element of ``element_type``."""
    return [el for el in _elements(source) if el.get("type") == element_type]


def md5(data: str | bytes) -> str:
    """Hex MD5 digest of a string or bytes."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def stringify_error(error: BaseException | object) -> str:
    """Format an error as ``Type: message`` for chat replies."""
    if isinstance(error, BaseException):
        return f"{type(error).__name__}: {str(error) or '[no message]'}"
    return str(error)


@dataclass
class ParsedCommand:
    """A chat command split into name and arguments."""

    name: str | None
    args: list[str] = field(default_factory=list)


def parse_command(content: str, prefix: str = "") -> ParsedCommand:
    """Split a chat command with shell-like quoting.

    With a prefix, the command only matches when the message starts with it;
    the prefix may be attached (``#ping``) or separated (``# ping``).

    Args:
        content: Message text
        prefix: Required command prefix

    Returns:
        ParsedCommand; ``name`` is None when the prefix does not match
    """
    content = content.strip()
    if prefix:
        if not content.startswith(prefix):
            return ParsedCommand(None)
        content = content[len(prefix) :].lstrip()

    try:
        tokens = shlex.split(content)
    except ValueError:
        # Unbalanced quotes: fall back to plain whitespace splitting
        tokens = content.split()

    if not tokens:
        return ParsedCommand(None)
    return ParsedCommand(tokens[0], tokens[1:])
