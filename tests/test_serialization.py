from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from telescope.exceptions import CaptureError
from telescope.serialization import PURGED, REDACTED, escape_html, is_html, redact, shape_body, to_jsonable, try_parse_json


def test_escape_html_covers_the_five_characters() -> None:
    assert escape_html('<b>"hi"</b>') == "&lt;b&gt;&quot;hi&quot;&lt;/b&gt;"
    assert escape_html("Tom & Jerry's") == "Tom &amp; Jerry&#39;s"


def test_escape_html_escapes_existing_entities_again() -> None:
    assert escape_html("&amp;") == "&amp;amp;"


def test_is_html_matches_the_content_type_prefix_exactly() -> None:
    assert is_html("text/html")
    assert is_html("text/html; charset=utf-8")
    assert not is_html("Text/HTML")
    assert not is_html("application/json")
    assert not is_html(None)


def test_shape_body_parses_json_and_keeps_plain_text() -> None:
    assert shape_body(b'{"a": [1, 2]}', "application/json") == {"a": [1, 2]}
    assert shape_body(b"plain words", "text/plain") == "plain words"
    assert shape_body(b"", "application/json") is None


def test_shape_body_escapes_only_html() -> None:
    body = b"<i>x</i>"
    assert shape_body(body, "text/html; charset=utf-8") == "&lt;i&gt;x&lt;/i&gt;"
    assert shape_body(body, "text/plain") == "<i>x</i>"


def test_shape_body_purges_oversized_bodies() -> None:
    body = json.dumps({"blob": "x" * 2048}).encode()

    assert shape_body(body, "application/json", size_limit_kb=1) == PURGED
    assert shape_body(body, "application/json", size_limit_kb=0) == {"blob": "x" * 2048}
    assert shape_body(b"x" * 1024, "text/plain", size_limit_kb=1) == "x" * 1024


def test_try_parse_json_falls_back_to_text() -> None:
    assert try_parse_json(b"[1, 2]") == [1, 2]
    assert try_parse_json(b"not json") == "not json"
    assert try_parse_json(None) is None


def test_redact_is_recursive_and_case_insensitive() -> None:
    value = {
        "user": "ann",
        "Password": "hunter2",
        "nested": {"TOKEN": "abc", "items": [{"password": "x", "keep": 1}]},
    }

    assert redact(value, ["password", "token"]) == {
        "user": "ann",
        "Password": REDACTED,
        "nested": {"TOKEN": REDACTED, "items": [{"password": REDACTED, "keep": 1}]},
    }
    assert redact(value, []) is value


def test_to_jsonable_handles_arbitrary_values() -> None:
    class Opaque:
        def __repr__(self) -> str:
            return "<Opaque>"

    moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    result = to_jsonable({"when": moment, "ids": (1, 2), "raw": b"ok", "thing": Opaque()})

    assert result == {"when": "2024-01-02T03:04:05Z", "ids": [1, 2], "raw": "ok", "thing": "<Opaque>"}


def test_to_jsonable_raises_capture_error_when_repr_fails() -> None:
    class Hostile:
        def __repr__(self) -> str:
            raise ValueError("no")

    with pytest.raises(CaptureError):
        to_jsonable(Hostile())
