"""Request-scoped batch ids.

The id lives in a ``ContextVar``: each inbound request (and every task it
spawns) sees its own value, and code running outside a request sees ``None``.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token

_batch_id: ContextVar[str | None] = ContextVar("telescope_batch_id", default=None)


def begin_batch() -> Token[str | None]:
    return _batch_id.set(str(uuid.uuid4()))


def end_batch(token: Token[str | None]) -> None:
    _batch_id.reset(token)


def current_batch_id() -> str | None:
    return _batch_id.get()


@contextmanager
def batch() -> Iterator[str]:
    token = begin_batch()
    try:
        yield _batch_id.get()  # type: ignore[misc]
    finally:
        end_batch(token)
