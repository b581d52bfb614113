from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import anyio.from_thread

from telescope.batch import current_batch_id
from telescope.models import Entry, EntryType, LogContent
from telescope.serialization import to_jsonable
from telescope.watchers.base import Watcher

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Our own loggers: a storage failure must not be captured as a log entry.
_OWN_LOGGER = "telescope"


class LogWatcher(Watcher):
    entry_type = EntryType.LOG
    name = "LogWatcher"

    async def capture(
        self,
        level: str,
        message: str,
        *,
        logger: str | None = None,
        context: dict[str, Any] | None = None,
        batch_id: str | None,
    ) -> Entry | None:
        return await self.record(
            lambda: LogContent(
                level=level.lower(),
                message=message,
                logger=logger,
                context=to_jsonable(context or {}),
            ),
            batch_id=batch_id,
        )

    async def capture_record(self, record: logging.LogRecord, *, batch_id: str | None) -> Entry | None:
        # structlog's ProcessorFormatter hands records over with the event dict as ``msg``.
        if isinstance(record.msg, dict):
            context = dict(record.msg)
            message = str(context.pop("event", ""))
            for key in ("level", "logger", "timestamp"):
                context.pop(key, None)
        else:
            message = record.getMessage()
            context = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}

        return await self.capture(
            record.levelname,
            message,
            logger=record.name,
            context=context,
            batch_id=batch_id,
        )


class TelescopeLogHandler(logging.Handler):
    """Stdlib handler feeding log records to the log watcher.

    The batch id is read when the record is emitted; the save itself runs as
    a task on the running loop and may complete later.
    """

    def __init__(
        self,
        dispatch: Callable[[logging.LogRecord, str | None], Awaitable[Any]],
        level: int = logging.NOTSET,
    ) -> None:
        super().__init__(level)
        self._dispatch = dispatch
        self._tasks: set[asyncio.Task[Any]] = set()

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == _OWN_LOGGER or record.name.startswith(f"{_OWN_LOGGER}."):
            return

        batch_id = current_batch_id()
        if isinstance(record.msg, dict):
            # Formatters may rework the event dict after this handler runs.
            record = logging.makeLogRecord({**vars(record), "msg": dict(record.msg)})
        try:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

            if loop is not None:
                task = loop.create_task(self._dispatch(record, batch_id))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                return

            try:
                # Sync endpoints run in AnyIO worker threads; hop back to the loop.
                anyio.from_thread.run(self._dispatch, record, batch_id)
            except RuntimeError:
                asyncio.run(self._dispatch(record, batch_id))
        except Exception:  # noqa: BLE001
            self.handleError(record)

    async def drain(self) -> None:
        """Wait for every scheduled save."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
