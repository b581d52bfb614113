from __future__ import annotations

from time import perf_counter
from typing import TYPE_CHECKING

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from telescope.models import EntryType
from telescope.watchers import InboundExchange

if TYPE_CHECKING:
    from telescope.core import Telescope


class TelescopeMiddleware:
    """Opens a batch per inbound request and fires the request/error watchers.

    The batch id is also bound into structlog's contextvars so every log line
    emitted while handling the request carries it.
    """

    def __init__(self, app: ASGIApp, telescope: Telescope) -> None:
        self.app = app
        self.telescope = telescope

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        telescope = self.telescope
        token = telescope.begin_batch()
        log_tokens = structlog.contextvars.bind_contextvars(
            batch_id=telescope.current_batch_id(),
            path=scope.get("path"),
            method=scope.get("method"),
        )

        # Response bodies are only kept up to the size limit; anything larger is purged anyway.
        limit_bytes = (telescope.options.response_size_limit or 0) * 1024
        request_body = bytearray()
        response_body = bytearray()
        response_headers: list[tuple[bytes, bytes]] = []
        status_code: int = 500
        start = perf_counter()

        async def receive_wrapper() -> Message:
            message = await receive()
            if message.get("type") == "http.request":
                request_body.extend(message.get("body", b""))
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, response_headers

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                response_headers = list(message.get("headers", []))
            elif message.get("type") == "http.response.body":
                if not limit_bytes or len(response_body) <= limit_bytes:
                    response_body.extend(message.get("body", b""))

            await send(message)

        def exchange() -> InboundExchange:
            return InboundExchange(
                scope=scope,
                request_body=bytes(request_body),
                response_status=status_code,
                response_headers=response_headers,
                response_body=bytes(response_body),
                duration=(perf_counter() - start) * 1000.0,
            )

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception as exc:
            await telescope.report(exc)
            await telescope.dispatch(EntryType.REQUEST, exchange())
            raise
        else:
            await telescope.dispatch(EntryType.REQUEST, exchange())
        finally:
            structlog.contextvars.reset_contextvars(**log_tokens)
            telescope.end_batch(token)
