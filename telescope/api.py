from __future__ import annotations

import inspect
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from telescope.core import Telescope, get_telescope
from telescope.models import EntriesResponse, Entry, EntryType, WatchersResponse


async def require_authorized(request: Request, telescope: Telescope = Depends(get_telescope)) -> None:
    is_authorized = telescope.options.is_authorized
    if is_authorized is None:
        return

    allowed = is_authorized(request)
    if inspect.isawaitable(allowed):
        allowed = await allowed
    if not allowed:
        raise HTTPException(status_code=403, detail="Forbidden")


router = APIRouter(prefix="/api", tags=["telescope"], dependencies=[Depends(require_authorized)])


@router.get("/watchers", response_model=WatchersResponse)
async def watchers(telescope: Telescope = Depends(get_telescope)) -> WatchersResponse:
    return WatchersResponse(watchers=telescope.enabled_watchers())


@router.get("/entries/{entry_type}", response_model=EntriesResponse)
async def list_entries(
    entry_type: EntryType,
    limit: int = Query(default=50, ge=1, le=500),
    before: datetime | None = None,
    telescope: Telescope = Depends(get_telescope),
) -> EntriesResponse:
    if before is not None and before.tzinfo is None:
        # Stored timestamps are UTC.
        before = before.replace(tzinfo=timezone.utc)
    entries = await telescope.driver.recent(entry_type, limit=limit, before=before)
    return EntriesResponse(entries=entries)


@router.get("/entries/{entry_type}/{entry_id}", response_model=Entry)
async def get_entry(entry_type: EntryType, entry_id: str, telescope: Telescope = Depends(get_telescope)) -> Entry:
    entry = await telescope.driver.get(entry_id)
    if entry is None or entry.type != entry_type:
        raise HTTPException(status_code=404, detail="Entry not found")
    return entry


@router.get("/batches/{batch_id}", response_model=EntriesResponse)
async def get_batch(batch_id: str, telescope: Telescope = Depends(get_telescope)) -> EntriesResponse:
    return EntriesResponse(entries=await telescope.driver.batch(batch_id))
