from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic_core import to_jsonable_python

from telescope.exceptions import CaptureError

PURGED = "Purged By Telescope"
REDACTED = "********"

_HTML_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        "'": "&#39;",
        '"': "&quot;",
    }
)


def escape_html(text: str) -> str:
    """Escape ``& < > ' "``.

    Not idempotent: the ``&`` of an existing entity is escaped again. Bodies
    are escaped once, at capture time.
    """

    return text.translate(_HTML_ESCAPES)


def is_html(content_type: str | None) -> bool:
    return (content_type or "").startswith("text/html")


def to_jsonable(value: Any) -> Any:
    """Convert an arbitrary value to JSON-safe data, falling back to ``repr``."""

    try:
        return to_jsonable_python(value, fallback=repr)
    except Exception as exc:  # noqa: BLE001
        raise CaptureError(f"Cannot serialize value of type {type(value).__name__}") from exc


def try_parse_json(data: bytes | None) -> Any:
    """Parse bytes as JSON, return the decoded text on failure."""
    if not data:
        return None
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return data.decode("utf-8", errors="replace")


def shape_body(data: bytes | None, content_type: str | None, *, size_limit_kb: int = 0) -> Any:
    """Turn a raw HTTP body into what gets stored.

    HTML is kept as escaped text, anything else is parsed as JSON when
    possible. Bodies over ``size_limit_kb`` are replaced by a marker.
    """

    if not data:
        return None
    if size_limit_kb and len(data) > size_limit_kb * 1024:
        return PURGED
    if is_html(content_type):
        return escape_html(data.decode("utf-8", errors="replace"))
    return try_parse_json(data)


def redact(value: Any, hidden: Iterable[str]) -> Any:
    """Mask values whose key is in ``hidden`` (case-insensitive), recursively."""

    hidden_keys = {key.lower() for key in hidden}
    if not hidden_keys:
        return value

    def _walk(node: Any) -> Any:
        if isinstance(node, Mapping):
            return {
                key: (REDACTED if str(key).lower() in hidden_keys else _walk(item))
                for key, item in node.items()
            }
        if isinstance(node, list):
            return [_walk(item) for item in node]
        return node

    return _walk(value)
