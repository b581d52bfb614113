from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EntryType(str, Enum):
    CLIENT_REQUEST = "client-requests"
    REQUEST = "requests"
    ERROR = "errors"
    LOG = "logs"
    DUMP = "dumps"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Entry(BaseModel):
    """Normalized, immutable record of one captured event.

    ``created_at`` is stamped when the entry is built, so ordering reflects when
    the event happened even if storage completes later or out of order.
    ``content`` is JSON-safe and never inspected by storage.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: EntryType
    batch_id: str | None = None
    content: dict[str, Any]
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def create(cls, type: EntryType, content: dict[str, Any], batch_id: str | None = None) -> Entry:
        return cls(type=type, content=content, batch_id=batch_id)


class EntriesResponse(BaseModel):
    entries: list[Entry]


class WatchersResponse(BaseModel):
    watchers: list[str]
