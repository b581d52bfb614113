from telescope.watchers.base import Watcher, matches_ignore_pattern
from telescope.watchers.client_request import ClientRequestWatcher
from telescope.watchers.dump import DumpWatcher
from telescope.watchers.error import ErrorWatcher
from telescope.watchers.log import LogWatcher, TelescopeLogHandler
from telescope.watchers.request import InboundExchange, RequestWatcher

ALL_WATCHERS: tuple[type[Watcher], ...] = (
    RequestWatcher,
    ErrorWatcher,
    ClientRequestWatcher,
    LogWatcher,
    DumpWatcher,
)

__all__ = [
    "ALL_WATCHERS",
    "ClientRequestWatcher",
    "DumpWatcher",
    "ErrorWatcher",
    "InboundExchange",
    "LogWatcher",
    "RequestWatcher",
    "TelescopeLogHandler",
    "Watcher",
    "matches_ignore_pattern",
]
