"""
Holiday and absence endpoints (org-scoped).

GET    /api/v1/organizations/{orgSlug}/holidays               - List holidays by date
POST   /api/v1/organizations/{orgSlug}/holidays               - Create holiday (Admin+)
PUT    /api/v1/organizations/{orgSlug}/holidays/{holidayId}   - Update holiday (Admin+)
DELETE /api/v1/organizations/{orgSlug}/holidays/{holidayId}   - Delete holiday (Admin+)
GET    /api/v1/organizations/{orgSlug}/absences               - Own absences, or all for Admin+
POST   /api/v1/organizations/{orgSlug}/absences               - Record own absence
POST   /api/v1/organizations/{orgSlug}/absences/admin         - Record a member's absence (Admin+)
DELETE /api/v1/organizations/{orgSlug}/absences/{absenceId}   - Delete own absence (any for Admin+)
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import OrgContext, require_admin, require_member
from app.core.database import get_session
from app.services import calendar as calendar_service
from timekeep_shared.schemas.calendar import (
    AbsenceCreate,
    AbsenceListResponse,
    AbsenceResponse,
    AdminAbsenceCreate,
    HolidayCreate,
    HolidayListResponse,
    HolidayResponse,
    HolidayUpdate,
)

router = APIRouter()


@router.get("/holidays", response_model=HolidayListResponse, tags=["Holidays"])
async def list_holidays(
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    holidays = await calendar_service.list_holidays(ctx.org_id, session)
    return HolidayListResponse(data=[calendar_service.holiday_response(h) for h in holidays])


@router.post("/holidays", response_model=HolidayResponse, status_code=201, tags=["Holidays"])
async def create_holiday(
    body: HolidayCreate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    holiday = await calendar_service.create_holiday(ctx.org_id, body, session)
    return calendar_service.holiday_response(holiday)


@router.put("/holidays/{holidayId}", response_model=HolidayResponse, tags=["Holidays"])
async def update_holiday(
    holidayId: int,
    body: HolidayUpdate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    holiday = await calendar_service.update_holiday(ctx.org_id, holidayId, body, session)
    return calendar_service.holiday_response(holiday)


@router.delete("/holidays/{holidayId}", status_code=204, tags=["Holidays"])
async def delete_holiday(
    holidayId: int,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await calendar_service.delete_holiday(ctx.org_id, holidayId, session)
    return Response(status_code=204)


@router.get("/absences", response_model=AbsenceListResponse, tags=["Absences"])
async def list_absences(
    user_id: Optional[int] = Query(None, alias="userId"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    """``userId`` is honored for Admin+ only; members always get their own."""
    items = await calendar_service.list_absences(
        ctx, session, user_id=user_id, date_from=date_from, date_to=date_to
    )
    return AbsenceListResponse(data=items)


@router.post("/absences", response_model=AbsenceResponse, status_code=201, tags=["Absences"])
async def create_absence(
    body: AbsenceCreate,
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    return await calendar_service.create_absence(ctx.org_id, ctx.user_id, body, session)


@router.post(
    "/absences/admin", response_model=AbsenceResponse, status_code=201, tags=["Absences"]
)
async def admin_create_absence(
    body: AdminAbsenceCreate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await calendar_service.create_absence(ctx.org_id, body.user_id, body, session)


@router.delete("/absences/{absenceId}", status_code=204, tags=["Absences"])
async def delete_absence(
    absenceId: int,
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    await calendar_service.delete_absence(ctx, absenceId, session)
    return Response(status_code=204)
