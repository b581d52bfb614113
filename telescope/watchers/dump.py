from __future__ import annotations

from typing import Any

from telescope.models import DumpContent, Entry, EntryType
from telescope.serialization import to_jsonable
from telescope.watchers.base import Watcher


class DumpWatcher(Watcher):
    entry_type = EntryType.DUMP
    name = "DumpWatcher"

    async def capture(self, value: Any, *, batch_id: str | None) -> Entry | None:
        return await self.record(lambda: DumpContent(dump=to_jsonable(value)), batch_id=batch_id)
