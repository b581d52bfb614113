from __future__ import annotations

import traceback

from telescope.models import Entry, EntryType, ErrorContent, TraceFrame
from telescope.watchers.base import Watcher, hostname


def _class_name(exc: BaseException) -> str:
    cls = type(exc)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


class ErrorWatcher(Watcher):
    entry_type = EntryType.ERROR
    name = "ErrorWatcher"

    def should_ignore(self, exc: BaseException) -> bool:
        return isinstance(exc, tuple(self.options.ignore_errors))

    async def capture(self, exc: BaseException, *, batch_id: str | None) -> Entry | None:
        if self.should_ignore(exc):
            return None
        return await self.record(lambda: self._shape(exc), batch_id=batch_id)

    def _shape(self, exc: BaseException) -> ErrorContent:
        frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        origin = frames[-1] if frames else None
        return ErrorContent(
            hostname=hostname(),
            class_name=_class_name(exc),
            message=str(exc),
            file=origin.filename if origin else None,
            line=origin.lineno if origin else None,
            trace=[TraceFrame(file=f.filename, line=f.lineno, function=f.name) for f in frames],
        )
