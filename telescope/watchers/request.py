from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any

import psutil
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import Scope

from telescope.models import Entry, EntryType, RequestContent
from telescope.serialization import redact, shape_body, to_jsonable, try_parse_json
from telescope.watchers.base import Watcher, hostname


@dataclass
class InboundExchange:
    """One finished inbound request, as seen by the middleware."""

    scope: Scope
    request_body: bytes
    response_status: int
    response_headers: list[tuple[bytes, bytes]]
    response_body: bytes
    duration: float


def _memory_mb() -> float | None:
    try:
        return round(psutil.Process().memory_info().rss / 1024 / 1024, 2)
    except psutil.Error:
        return None


class RequestWatcher(Watcher):
    entry_type = EntryType.REQUEST
    name = "RequestWatcher"

    def should_ignore(self, path: str) -> bool:
        route_prefix = self.options.route_prefix or ""
        if route_prefix and (path == route_prefix or path.startswith(f"{route_prefix}/")):
            return True
        return any(prefix and path.startswith(prefix.rstrip("*")) for prefix in self.options.ignore_paths or ())

    async def capture(self, exchange: InboundExchange, *, batch_id: str | None) -> Entry | None:
        if self.should_ignore(exchange.scope.get("path", "")):
            return None

        request = Request(exchange.scope)
        user = await self._resolve_user(request)
        return await self.record(lambda: self._shape(request, exchange, user), batch_id=batch_id)

    async def _resolve_user(self, request: Request) -> Any:
        get_user = self.options.get_user
        if get_user is None:
            return None
        try:
            user = get_user(request)
            if inspect.isawaitable(user):
                user = await user
        except Exception:  # noqa: BLE001 - an unknown user is not worth losing the entry
            return None
        return user

    def _shape(self, request: Request, exchange: InboundExchange, user: Any) -> RequestContent:
        hidden = self.options.params_to_hide or ()
        response_headers = Headers(raw=exchange.response_headers)
        payload = try_parse_json(exchange.request_body)
        uri = request.url.path
        if request.url.query:
            uri = f"{uri}?{request.url.query}"

        return RequestContent(
            hostname=hostname(),
            method=request.method,
            uri=uri,
            ip=request.client.host if request.client else None,
            headers=redact(dict(request.headers), hidden),
            payload=redact(payload, hidden) if payload is not None else {},
            response_status=exchange.response_status,
            response_headers=dict(response_headers),
            response=shape_body(
                exchange.response_body,
                response_headers.get("content-type"),
                size_limit_kb=self.options.response_size_limit or 0,
            ),
            duration=round(exchange.duration, 2),
            memory=_memory_mb(),
            user=to_jsonable(user),
        )
