from __future__ import annotations

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from telescope import MemoryStorage, Telescope, TelescopeOptions


async def test_watchers_endpoint_lists_enabled_watchers(api_client) -> None:
    resp = await api_client.get("/telescope/api/watchers")
    assert resp.status_code == 200
    assert resp.json()["watchers"] == [
        "RequestWatcher",
        "ErrorWatcher",
        "ClientRequestWatcher",
        "LogWatcher",
        "DumpWatcher",
    ]


async def test_entries_endpoint_lists_newest_first(api_client) -> None:
    await api_client.get("/health")
    await api_client.post("/echo", json={"n": 1})

    resp = await api_client.get("/telescope/api/entries/requests")
    assert resp.status_code == 200
    entries = resp.json()["entries"]
    assert [entry["content"]["uri"] for entry in entries] == ["/echo", "/health"]
    assert all(entry["type"] == "requests" for entry in entries)

    limited = await api_client.get("/telescope/api/entries/requests", params={"limit": 1})
    assert [entry["content"]["uri"] for entry in limited.json()["entries"]] == ["/echo"]


async def test_entries_endpoint_treats_naive_before_as_utc(api_client) -> None:
    await api_client.get("/health")

    later = await api_client.get("/telescope/api/entries/requests", params={"before": "2099-01-01T00:00:00"})
    assert later.status_code == 200
    assert [entry["content"]["uri"] for entry in later.json()["entries"]] == ["/health"]

    earlier = await api_client.get("/telescope/api/entries/requests", params={"before": "2000-01-01T00:00:00"})
    assert earlier.status_code == 200
    assert earlier.json()["entries"] == []


async def test_entries_endpoint_validates_its_input(api_client) -> None:
    assert (await api_client.get("/telescope/api/entries/queries")).status_code == 422
    assert (await api_client.get("/telescope/api/entries/logs", params={"limit": 0})).status_code == 422


async def test_entry_endpoint_returns_one_entry(api_client, storage: MemoryStorage) -> None:
    await api_client.get("/dump")
    dump = storage.all()[0]

    resp = await api_client.get(f"/telescope/api/entries/dumps/{dump.id}")
    assert resp.status_code == 200
    assert resp.json()["content"] == {"dump": {"answer": 42, "ids": [1, 2]}}

    assert (await api_client.get(f"/telescope/api/entries/logs/{dump.id}")).status_code == 404
    assert (await api_client.get("/telescope/api/entries/dumps/missing")).status_code == 404


async def test_batch_endpoint_groups_one_request(api_client, storage: MemoryStorage) -> None:
    await api_client.get("/proxy")
    batch_id = storage.all()[0].batch_id

    resp = await api_client.get(f"/telescope/api/batches/{batch_id}")
    assert resp.status_code == 200
    types = [entry["type"] for entry in resp.json()["entries"]]
    assert sorted(types) == ["client-requests", "client-requests", "requests"]


async def test_api_requests_are_not_captured(api_client, storage: MemoryStorage) -> None:
    await api_client.get("/telescope/api/watchers")
    assert storage.all() == []


async def test_is_authorized_guards_the_api(app: FastAPI, storage: MemoryStorage) -> None:
    async def is_authorized(request) -> bool:
        return request.headers.get("x-telescope-key") == "letmein"

    Telescope.setup(app, TelescopeOptions(storage=storage, is_authorized=is_authorized))
    transport = ASGITransport(app=app, raise_app_exceptions=False)

    async with AsyncClient(transport=transport, base_url="http://test") as client:
        denied = await client.get("/telescope/api/watchers")
        allowed = await client.get("/telescope/api/watchers", headers={"X-Telescope-Key": "letmein"})

    assert denied.status_code == 403
    assert allowed.status_code == 200
