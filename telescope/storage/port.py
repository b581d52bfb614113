from __future__ import annotations

import structlog

from telescope.exceptions import StorageError
from telescope.models import Entry
from telescope.storage.base import StorageDriver

logger = structlog.get_logger(__name__)


class StoragePort:
    """Fail-open front of a storage driver.

    Writes never raise: a driver failure becomes a logged ``StorageError`` and
    the observed request carries on unaffected.
    """

    def __init__(self, driver: StorageDriver) -> None:
        self.driver = driver

    async def save(self, entry: Entry) -> bool:
        try:
            await self.driver.save(entry)
        except Exception as exc:  # noqa: BLE001 - observability must not break the observed code
            error = StorageError(str(exc) or type(exc).__name__, entry_id=entry.id)
            logger.error(
                "telescope.storage_failed",
                entry_id=error.entry_id,
                entry_type=entry.type.value,
                batch_id=entry.batch_id,
                error=str(error),
                exc_info=exc,
            )
            return False
        return True
