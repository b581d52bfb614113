from telescope.models.content import (
    ClientRequestContent,
    DumpContent,
    ErrorContent,
    LogContent,
    RequestContent,
    TraceFrame,
)
from telescope.models.entry import EntriesResponse, Entry, EntryType, WatchersResponse

__all__ = [
    "ClientRequestContent",
    "DumpContent",
    "EntriesResponse",
    "Entry",
    "EntryType",
    "ErrorContent",
    "LogContent",
    "RequestContent",
    "TraceFrame",
    "WatchersResponse",
]
