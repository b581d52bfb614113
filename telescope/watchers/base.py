from __future__ import annotations

import socket
from collections.abc import Callable
from typing import ClassVar

import structlog
from pydantic import BaseModel

from telescope.config import TelescopeOptions
from telescope.exceptions import CaptureError
from telescope.models import Entry, EntryType
from telescope.storage import StoragePort

logger = structlog.get_logger(__name__)


def matches_ignore_pattern(value: str, pattern: str) -> bool:
    """Exact match, or prefix match when ``pattern`` ends with ``*``."""
    if pattern.endswith("*"):
        return value.startswith(pattern[:-1])
    return value == pattern


def hostname() -> str:
    return socket.gethostname()


class Watcher:
    """One category of captured event.

    Subclasses own the interception-specific parts (trigger, filter, payload);
    :meth:`record` does the shared shape → entry → persist step.
    """

    entry_type: ClassVar[EntryType]
    name: ClassVar[str]

    def __init__(self, storage: StoragePort, options: TelescopeOptions) -> None:
        self.storage = storage
        self.options = options

    async def record(self, shape: Callable[[], BaseModel], *, batch_id: str | None) -> Entry | None:
        """Build the payload and persist it. Returns the entry, or None if dropped."""
        try:
            content = shape().model_dump(mode="json")
        except Exception as exc:  # noqa: BLE001 - a bad payload drops the entry, nothing else
            error = exc if isinstance(exc, CaptureError) else CaptureError(str(exc))
            logger.warning(
                "telescope.capture_failed",
                watcher=self.name,
                batch_id=batch_id,
                error=str(error),
                exc_info=exc,
            )
            return None

        entry = Entry.create(self.entry_type, content, batch_id=batch_id)
        if not await self.storage.save(entry):
            return None
        return entry
