from __future__ import annotations


class TelescopeError(Exception):
    """Base class for everything raised by the capture layer."""


class CaptureError(TelescopeError):
    """A payload could not be built or shaped.

    Never escapes into the observed code path: the watcher logs it and drops
    the entry.
    """


class StorageError(TelescopeError):
    """A storage driver failed to persist an entry."""

    def __init__(self, message: str, *, entry_id: str | None = None) -> None:
        super().__init__(message)
        self.entry_id = entry_id


class ConfigurationError(TelescopeError):
    """Invalid setup options. Raised at setup time, before serving."""
