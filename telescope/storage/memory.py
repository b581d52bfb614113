from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime

from telescope.models import Entry, EntryType


class MemoryStorage:
    """
    In-process driver: one list per category, reset on restart.

    Used when no database URL is configured, and by the tests.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._entries: dict[EntryType, list[Entry]] = defaultdict(list)
        self._by_id: dict[str, Entry] = {}

    async def save(self, entry: Entry) -> None:
        async with self._lock:
            self._entries[entry.type].append(entry)
            self._by_id[entry.id] = entry

    async def get(self, entry_id: str) -> Entry | None:
        return self._by_id.get(entry_id)

    async def recent(self, type: EntryType, *, limit: int = 50, before: datetime | None = None) -> list[Entry]:
        async with self._lock:
            rows = list(self._entries[type])
        if before is not None:
            rows = [entry for entry in rows if entry.created_at < before]
        rows.sort(key=lambda entry: entry.created_at, reverse=True)
        return rows[:limit]

    async def batch(self, batch_id: str) -> list[Entry]:
        async with self._lock:
            rows = [entry for entry in self._by_id.values() if entry.batch_id == batch_id]
        rows.sort(key=lambda entry: entry.created_at)
        return rows

    def all(self, type: EntryType | None = None) -> list[Entry]:
        """Stored entries in save order (test helper)."""
        if type is not None:
            return list(self._entries[type])
        return list(self._by_id.values())

    def reset(self) -> None:
        self._entries.clear()
        self._by_id.clear()
