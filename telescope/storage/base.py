"""
Storage driver interface (port).

Concrete backends live outside the capture pipeline; watchers only ever talk
to a driver through :class:`telescope.storage.port.StoragePort`.
"""
from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from telescope.models import Entry, EntryType


@runtime_checkable
class StorageDriver(Protocol):
    """
    Persistence contract for captured entries, grouped by ``entry.type``.

    ``save`` may be called concurrently, for the same category and for
    different ones. Ordering of concurrent saves is not guaranteed; a driver
    that needs strict ordering serializes writes itself.
    """

    async def save(self, entry: Entry) -> None:
        """Persist one entry. Raise on failure."""
        ...

    async def get(self, entry_id: str) -> Entry | None:
        ...

    async def recent(self, type: EntryType, *, limit: int = 50, before: datetime | None = None) -> list[Entry]:
        """Entries of one category, newest first, optionally older than ``before``."""
        ...

    async def batch(self, batch_id: str) -> list[Entry]:
        """Every entry of one batch, oldest first."""
        ...
