from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx
import pytest
from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from httpx import ASGITransport, AsyncClient

from telescope import MemoryStorage, Telescope, TelescopeOptions, get_settings, get_telescope, reset_telescope

UPSTREAM = "https://api.example.com"


class BrokenStorage(MemoryStorage):
    """Driver whose writes always fail."""

    async def save(self, entry) -> None:
        raise RuntimeError("disk full")


async def upstream_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/page":
        return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text='<b>"hi"</b>')
    if request.url.path == "/missing":
        return httpx.Response(404, json={"error": "not found"})
    if request.url.path == "/down":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(200, json={"path": request.url.path, "method": request.method})


def build_app() -> FastAPI:
    app = FastAPI(title="Observed App")
    app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream_handler))

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/echo")
    async def echo(payload: dict) -> dict:
        return payload

    @app.get("/page", response_class=HTMLResponse)
    async def page() -> HTMLResponse:
        return HTMLResponse('<p class="x">Tom & Jerry</p>')

    @app.get("/boom")
    async def boom() -> dict:
        raise RuntimeError("boom")

    @app.get("/teapot")
    async def teapot() -> dict:
        raise HTTPException(status_code=418, detail="short and stout")

    @app.get("/proxy")
    async def proxy() -> dict:
        first = await app.state.http_client.get(f"{UPSTREAM}/first")
        second = await app.state.http_client.post(f"{UPSTREAM}/second", json={"n": 2})
        return {"first": first.json(), "second": second.json()}

    @app.get("/log")
    async def log() -> dict[str, str]:
        logging.getLogger("observed.app").warning("cache miss for %s", "user:1", extra={"shard": 3})
        return {"status": "logged"}

    @app.get("/dump")
    async def dump() -> dict[str, str]:
        await get_telescope().dump({"answer": 42, "ids": (1, 2)})
        return {"status": "dumped"}

    return app


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "TELESCOPE_ENABLED_WATCHERS",
        "TELESCOPE_DATABASE_URL",
        "TELESCOPE_RESPONSE_SIZE_LIMIT",
        "TELESCOPE_PARAMS_TO_HIDE",
        "TELESCOPE_IGNORE_PATHS",
        "TELESCOPE_CLIENT_IGNORE_URLS",
        "TELESCOPE_ROUTE_PREFIX",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    reset_telescope()

    yield

    reset_telescope()
    get_settings.cache_clear()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def broken_storage() -> BrokenStorage:
    return BrokenStorage()


@pytest.fixture
def app() -> FastAPI:
    return build_app()


@pytest.fixture
def telescope(app: FastAPI, storage: MemoryStorage) -> Telescope:
    telescope = Telescope.setup(app, TelescopeOptions(storage=storage))
    telescope.instrument(app.state.http_client)
    return telescope


@pytest.fixture
async def api_client(app: FastAPI, telescope: Telescope) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
