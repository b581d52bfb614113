"""Outbound HTTP capture for ``httpx.AsyncClient``.

Each caller-level ``send`` is paired with its own final response through a
token issued before sending; pending calls are kept in a mapping keyed by
that token, so overlapping calls never cross-pair and redirect hops never
count as separate calls.
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from time import perf_counter

import httpx
import structlog

from telescope.config import TelescopeOptions
from telescope.models import ClientRequestContent, Entry, EntryType
from telescope.serialization import redact, shape_body, try_parse_json
from telescope.storage import StoragePort
from telescope.watchers.base import Watcher, hostname, matches_ignore_pattern

logger = structlog.get_logger(__name__)


@dataclass
class PendingCall:
    request: httpx.Request
    batch_id: str | None
    started: float


def _body(message: httpx.Request | httpx.Response) -> bytes:
    try:
        return message.content
    except httpx.StreamError:
        # Streaming bodies that were never read.
        return b""


class RecordingStream(httpx.AsyncByteStream):
    """Tees a streamed response body and reports it once the caller closes it.

    Only the first ``limit_bytes`` (plus one chunk) are kept; a longer body is
    purged when shaped anyway.
    """

    def __init__(
        self,
        stream: httpx.AsyncByteStream,
        on_close: Callable[[bytes], Awaitable[object]],
        limit_bytes: int = 0,
    ) -> None:
        self._stream = stream
        self._on_close = on_close
        self._limit_bytes = limit_bytes
        self._buffer = bytearray()
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            if not self._limit_bytes or len(self._buffer) <= self._limit_bytes:
                self._buffer.extend(chunk)
            yield chunk

    async def aclose(self) -> None:
        try:
            await self._stream.aclose()
        finally:
            if not self._closed:
                self._closed = True
                await self._on_close(bytes(self._buffer))


class ClientRequestWatcher(Watcher):
    entry_type = EntryType.CLIENT_REQUEST
    name = "ClientRequestWatcher"

    def __init__(self, storage: StoragePort, options: TelescopeOptions) -> None:
        super().__init__(storage, options)
        self._pending: dict[str, PendingCall] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def should_ignore(self, url: str) -> bool:
        return any(matches_ignore_pattern(url, pattern) for pattern in self.options.client_ignore_urls or ())

    def before_send(self, request: httpx.Request, batch_id: str | None) -> str:
        """Pre-send hook: stash the call under a fresh token."""
        call_id = uuid.uuid4().hex
        self._pending[call_id] = PendingCall(request=request, batch_id=batch_id, started=perf_counter())
        return call_id

    def discard(self, call_id: str) -> None:
        self._pending.pop(call_id, None)

    def _claim(self, call_id: str) -> PendingCall | None:
        pending = self._pending.pop(call_id, None)
        if pending is None:
            logger.debug("telescope.client_request.orphaned", call_id=call_id)
            return None
        if self.should_ignore(str(pending.request.url)):
            return None
        return pending

    async def after_response(self, call_id: str, response: httpx.Response) -> Entry | None:
        """Post-receive hook (success) for a buffered call: the body is already read."""
        pending = self._claim(call_id)
        if pending is None:
            return None
        body = _body(response)
        return await self.record(lambda: self._shape(pending, response, body, None), batch_id=pending.batch_id)

    def after_stream(self, call_id: str, response: httpx.Response) -> None:
        """Post-receive hook (success) for a streamed call.

        The response goes back to the caller untouched; the entry is recorded
        from the teed body when the caller closes it.
        """
        pending = self._claim(call_id)
        if pending is None:
            return

        async def on_close(body: bytes) -> Entry | None:
            return await self.record(lambda: self._shape(pending, response, body, None), batch_id=pending.batch_id)

        response.stream = RecordingStream(
            response.stream,
            on_close,
            limit_bytes=(self.options.response_size_limit or 0) * 1024,
        )

    async def after_failure(self, call_id: str, exc: BaseException) -> Entry | None:
        """Post-receive hook (failure). The caller re-raises ``exc`` afterwards."""
        pending = self._claim(call_id)
        if pending is None:
            return None

        response = exc.response if isinstance(exc, httpx.HTTPStatusError) else None
        body = _body(response) if response is not None else b""
        return await self.record(lambda: self._shape(pending, response, body, exc), batch_id=pending.batch_id)

    def _shape(
        self,
        pending: PendingCall,
        response: httpx.Response | None,
        body: bytes,
        error: BaseException | None,
    ) -> ClientRequestContent:
        request = pending.request
        hidden = self.options.params_to_hide or ()
        payload = try_parse_json(_body(request))

        content = ClientRequestContent(
            hostname=hostname(),
            method=request.method.upper(),
            uri=str(request.url),
            headers=redact(dict(request.headers), hidden),
            payload=redact(payload, hidden) if payload is not None else {},
            duration=round((perf_counter() - pending.started) * 1000.0, 2),
            error=f"{type(error).__name__}: {error}" if error is not None else None,
        )
        if response is not None:
            content.response_status = response.status_code
            content.response_headers = dict(response.headers)
            content.response = shape_body(
                body,
                response.headers.get("content-type"),
                size_limit_kb=self.options.response_size_limit or 0,
            )
            if response.history:
                content.redirects = [str(hop.request.url) for hop in response.history[1:]] + [str(response.request.url)]
        return content
