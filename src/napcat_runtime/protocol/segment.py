"""Message element builders and shape conversions.

On the wire every element is ``{"type": ..., "data": {...}}``. Handlers work
with flat elements (``{"type": "text", "text": "hi"}``) which are easier to
match on. Outbound content may be a string, a flat element, a wire element,
or a list of any of those.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

Element = dict[str, Any]
Sendable = str | Element | Iterable["Sendable"]


def _wire(type_: str, **data: Any) -> Element:
    return {"type": type_, "data": data}


def text(content: str) -> Element:
    """Create a text element."""
    return _wire("text", text=content)


def at(qq: int | str) -> Element:
    """Create a mention element; pass ``"all"`` to mention everyone."""
    return _wire("at", qq=str(qq))


def reply(message_id: int | str) -> Element:
    """Create a quote-reply marker element."""
    return _wire("reply", id=str(message_id))


def face(face_id: int) -> Element:
    """Create a built-in emoji element."""
    return _wire("face", id=face_id)


def image(file: str, summary: str | None = None) -> Element:
    """Create an image element from a URL, path or base64 URI."""
    if summary is None:
        return _wire("image", file=file)
    return _wire("image", file=file, summary=summary)


def record(file: str) -> Element:
    """Create a voice element."""
    return _wire("record", file=file)


def video(file: str) -> Element:
    """Create a video element."""
    return _wire("video", file=file)


def file(path: str, name: str | None = None) -> Element:
    """Create a file element."""
    if name is None:
        return _wire("file", file=path)
    return _wire("file", file=path, name=name)


def json_card(data: str) -> Element:
    """Create a JSON card element."""
    return _wire("json", data=data)


def poke() -> Element:
    """Create a poke element."""
    return _wire("poke")


def _to_wire(item: str | Element) -> Element:
    if isinstance(item, str):
        return text(item)
    if set(item) <= {"type", "data"} and isinstance(item.get("data", {}), dict):
        return {"type": item["type"], "data": dict(item.get("data", {}))}
    return {"type": item["type"], "data": {k: v for k, v in item.items() if k != "type"}}


def normalize_sendable(content: Sendable) -> list[Element]:
    """Convert any outbound content into a list of wire elements."""
    if isinstance(content, str | dict):
        return [_to_wire(content)]

    elements: list[Element] = []
    for item in content:
        elements.extend(normalize_sendable(item))
    return elements


def flatten_elements(elements: Iterable[Element]) -> list[Element]:
    """Convert received wire elements into flat ``{type, ...fields}`` records."""
    flat: list[Element] = []
    for element in elements:
        data = element.get("data")
        if isinstance(data, dict):
            flat.append({**data, "type": element.get("type")})
        else:
            flat.append(dict(element))
    return flat
