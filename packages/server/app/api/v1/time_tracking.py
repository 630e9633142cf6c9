"""
Time tracking endpoints (not org-scoped; entries belong to the caller).

POST   /api/v1/timetracking/start      - Start a session (stops the running one)
POST   /api/v1/timetracking/stop       - Stop the running session, apply pause rules
GET    /api/v1/timetracking/current    - The running session
GET    /api/v1/timetracking            - History (org/from/to filters, paging)
PUT    /api/v1/timetracking/{entryId}  - Edit a stopped entry
DELETE /api/v1/timetracking/{entryId}  - Delete an entry
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import time_entries as entry_service
from timekeep_shared.schemas.time_entries import (
    TimeEntryListResponse,
    TimeEntryResponse,
    TimeEntryStart,
    TimeEntryStop,
    TimeEntryUpdate,
)

router = APIRouter()


@router.post("/start", response_model=TimeEntryResponse, status_code=201)
async def start(
    body: Optional[TimeEntryStart] = Body(None),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await entry_service.start_entry(user, body or TimeEntryStart(), session)


@router.post("/stop", response_model=TimeEntryResponse)
async def stop(
    body: Optional[TimeEntryStop] = Body(None),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await entry_service.stop_entry(user, body, session)


@router.get("/current", response_model=TimeEntryResponse)
async def current(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await entry_service.current_entry(user, session)


@router.get("", response_model=TimeEntryListResponse)
async def history(
    organization_id: Optional[int] = Query(None, alias="organizationId"),
    start_from: Optional[datetime] = Query(None, alias="from"),
    start_to: Optional[datetime] = Query(None, alias="to"),
    limit: int = Query(50, ge=0),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """The caller's entries, newest first. ``limit`` is capped at 10000."""
    items = await entry_service.history(
        user,
        session,
        organization_id=organization_id,
        start_from=start_from,
        start_to=start_to,
        limit=limit,
        offset=offset,
    )
    return TimeEntryListResponse(data=items)


@router.put("/{entryId}", response_model=TimeEntryResponse)
async def update(
    entryId: int,
    body: TimeEntryUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await entry_service.update_entry(user, entryId, body, session)


@router.delete("/{entryId}", status_code=204)
async def delete(
    entryId: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await entry_service.delete_entry(user, entryId, session)
    return Response(status_code=204)
