from __future__ import annotations

import asyncio
import functools
import logging
import weakref
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from contextvars import Token
from typing import Any

import httpx
import structlog
from fastapi import FastAPI
from starlette.applications import Starlette

from telescope import batch as batch_context
from telescope.config import TelescopeOptions, get_settings
from telescope.exceptions import ConfigurationError
from telescope.middleware import TelescopeMiddleware
from telescope.models import Entry, EntryType
from telescope.storage import MemoryStorage, SQLStorage, StorageDriver, StoragePort
from telescope.watchers import ALL_WATCHERS, ClientRequestWatcher, LogWatcher, TelescopeLogHandler, Watcher

logger = structlog.get_logger(__name__)

_TELESCOPE: Telescope | None = None


def get_telescope() -> Telescope:
    if _TELESCOPE is None:
        raise ConfigurationError("Telescope.setup() has not been called")
    return _TELESCOPE


def reset_telescope() -> None:
    """Drop the process-wide coordinator and its log handler (used by tests)."""

    global _TELESCOPE
    if _TELESCOPE is not None:
        _TELESCOPE.uninstall_log_handler()
    _TELESCOPE = None


def _resolve_watchers(names: Sequence[str | type]) -> list[type[Watcher]]:
    known: dict[str, type[Watcher]] = {}
    for cls in ALL_WATCHERS:
        known[cls.name] = cls
        known[cls.entry_type.value] = cls

    resolved: list[type[Watcher]] = []
    for item in names:
        if isinstance(item, type) and item in ALL_WATCHERS:
            cls = item
        elif isinstance(item, str) and item in known:
            cls = known[item]
        else:
            raise ConfigurationError(f"Unknown watcher: {item!r}")
        if cls not in resolved:
            resolved.append(cls)
    return resolved


def _build_driver(options: TelescopeOptions) -> StorageDriver:
    if options.storage is not None:
        if not isinstance(options.storage, StorageDriver):
            raise ConfigurationError(f"storage does not implement StorageDriver: {options.storage!r}")
        return options.storage
    if options.database_url:
        return SQLStorage(options.database_url)
    return MemoryStorage()


class Telescope:
    """Process-wide capture coordinator.

    Knows which watchers are enabled, owns the request-scoped batch id and
    every hook it has installed. Hooks dispatch through the coordinator, so a
    later :meth:`setup` can change the watchers without reinstalling them.
    """

    def __init__(self, options: TelescopeOptions | None = None) -> None:
        self._apps: weakref.WeakSet[Any] = weakref.WeakSet()
        self._clients: weakref.WeakSet[httpx.AsyncClient] = weakref.WeakSet()
        self._log_handler: TelescopeLogHandler | None = None
        self.configure(options or TelescopeOptions())

    @classmethod
    def setup(cls, app: Starlette | None = None, options: TelescopeOptions | None = None) -> Telescope:
        """Configure the process-wide coordinator and install its hooks once.

        Raises ``ConfigurationError`` on invalid options, leaving any previous
        configuration in place.
        """

        global _TELESCOPE
        if _TELESCOPE is None:
            _TELESCOPE = cls(options)
        else:
            _TELESCOPE.configure(options or TelescopeOptions())

        telescope = _TELESCOPE
        if app is not None:
            telescope.install(app)
        if telescope.watcher(EntryType.LOG) is not None:
            telescope.install_log_handler()
        else:
            telescope.uninstall_log_handler()
        logger.info(
            "telescope.setup",
            watchers=telescope.enabled_watchers(),
            storage=type(telescope.driver).__name__,
        )
        return telescope

    def configure(self, options: TelescopeOptions) -> None:
        resolved = options.with_defaults(get_settings())
        watcher_classes = _resolve_watchers(resolved.enabled_watchers or ())
        storage = StoragePort(_build_driver(resolved))

        self.options = resolved
        self.storage = storage
        self._watchers: dict[EntryType, Watcher] = {cls.entry_type: cls(storage, resolved) for cls in watcher_classes}

    @property
    def driver(self) -> StorageDriver:
        return self.storage.driver

    def enabled_watchers(self) -> list[str]:
        return [watcher.name for watcher in self._watchers.values()]

    def watcher(self, entry_type: EntryType) -> Watcher | None:
        return self._watchers.get(entry_type)

    # Batches

    def begin_batch(self) -> Token[str | None]:
        return batch_context.begin_batch()

    def end_batch(self, token: Token[str | None]) -> None:
        batch_context.end_batch(token)

    def current_batch_id(self) -> str | None:
        return batch_context.current_batch_id()

    @contextmanager
    def batch(self) -> Iterator[str]:
        with batch_context.batch() as batch_id:
            yield batch_id

    # Dispatch

    async def dispatch(self, entry_type: EntryType, *args: Any, **kwargs: Any) -> Entry | None:
        """Hand an interception event to the enabled watcher for ``entry_type``."""
        watcher = self._watchers.get(entry_type)
        if watcher is None:
            return None
        return await watcher.capture(*args, batch_id=batch_context.current_batch_id(), **kwargs)  # type: ignore[attr-defined]

    async def report(self, exc: BaseException) -> Entry | None:
        return await self.dispatch(EntryType.ERROR, exc)

    async def log(self, level: str, message: str, **context: Any) -> Entry | None:
        return await self.dispatch(EntryType.LOG, level, message, context=context)

    async def dump(self, value: Any) -> Entry | None:
        return await self.dispatch(EntryType.DUMP, value)

    async def flush(self) -> None:
        """Wait for log entries still being saved in the background."""
        if self._log_handler is not None:
            await self._log_handler.drain()

    # Hook installation

    def install(self, app: Starlette) -> None:
        """Add the capture middleware (and, on FastAPI, the inspection API) once per app."""
        if app in self._apps:
            return

        from telescope.api import router

        app.add_middleware(TelescopeMiddleware, telescope=self)
        if isinstance(app, FastAPI):
            app.include_router(router, prefix=self.options.route_prefix)
        self._apps.add(app)

    def install_log_handler(self) -> None:
        if self._log_handler is not None:
            return
        self._log_handler = TelescopeLogHandler(self._capture_log_record)
        logging.getLogger().addHandler(self._log_handler)

    def uninstall_log_handler(self) -> None:
        if self._log_handler is None:
            return
        logging.getLogger().removeHandler(self._log_handler)
        self._log_handler = None

    def instrument(self, client: httpx.AsyncClient) -> httpx.AsyncClient:
        """Wrap ``client.send`` so every caller-level call is captured. Idempotent per client."""
        if client in self._clients:
            return client

        send = client.send

        @functools.wraps(send)
        async def send_with_capture(request: httpx.Request, **kwargs: Any) -> httpx.Response:
            watcher = self._client_watcher()
            if watcher is None:
                return await send(request, **kwargs)

            call_id = watcher.before_send(request, batch_context.current_batch_id())
            try:
                response = await send(request, **kwargs)
            except asyncio.CancelledError:
                watcher.discard(call_id)
                raise
            except Exception as exc:
                await watcher.after_failure(call_id, exc)
                raise

            if kwargs.get("stream"):
                watcher.after_stream(call_id, response)
            else:
                await watcher.after_response(call_id, response)
            return response

        client.send = send_with_capture  # type: ignore[method-assign]
        self._clients.add(client)
        return client

    def http_client(self, **kwargs: Any) -> httpx.AsyncClient:
        return self.instrument(httpx.AsyncClient(**kwargs))

    def _client_watcher(self) -> ClientRequestWatcher | None:
        watcher = self._watchers.get(EntryType.CLIENT_REQUEST)
        return watcher if isinstance(watcher, ClientRequestWatcher) else None

    async def _capture_log_record(self, record: logging.LogRecord, batch_id: str | None) -> None:
        watcher = self._watchers.get(EntryType.LOG)
        if isinstance(watcher, LogWatcher):
            await watcher.capture_record(record, batch_id=batch_id)
