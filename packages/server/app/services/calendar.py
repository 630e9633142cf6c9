"""
Calendar service - organization holidays and members' absence days.

Holidays are unique per (org, date) and managed by Admin+. Absences are
unique per (member, date); members record and remove their own, Admin+
record for anyone and see everyone's.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import OrgContext
from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.models.absence_day import AbsenceDay
from app.models.holiday import Holiday
from app.models.user import User
from app.services import organizations as org_service
from timekeep_shared.schemas.calendar import (
    AbsenceCreate,
    AbsenceResponse,
    HolidayCreate,
    HolidayResponse,
    HolidayUpdate,
)
from timekeep_shared.schemas.common import OrgRole, role_at_least

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Holidays
# ---------------------------------------------------------------------------

def holiday_response(holiday: Holiday) -> HolidayResponse:
    return HolidayResponse(
        id=holiday.id,
        organization_id=holiday.organization_id,
        date=holiday.date,
        name=holiday.name,
        is_recurring=holiday.is_recurring,
    )


async def list_holidays(org_id: int, session: AsyncSession) -> list[Holiday]:
    result = await session.execute(
        select(Holiday).where(Holiday.organization_id == org_id).order_by(Holiday.date)
    )
    return list(result.scalars().all())


async def _ensure_free_date(
    org_id: int, day: date, session: AsyncSession, exclude_id: Optional[int] = None
) -> None:
    stmt = select(Holiday.id).where(Holiday.organization_id == org_id, Holiday.date == day)
    if exclude_id is not None:
        stmt = stmt.where(Holiday.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise ConflictError("A holiday already exists on this date.")


async def _flush_holiday(session: AsyncSession) -> None:
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("A holiday already exists on this date.")


async def get_holiday(org_id: int, holiday_id: int, session: AsyncSession) -> Holiday:
    holiday = await session.get(Holiday, holiday_id)
    if not holiday or holiday.organization_id != org_id:
        raise NotFoundError("Holiday not found.")
    return holiday


async def create_holiday(org_id: int, body: HolidayCreate, session: AsyncSession) -> Holiday:
    await _ensure_free_date(org_id, body.date, session)
    holiday = Holiday(
        organization_id=org_id,
        date=body.date,
        name=body.name,
        is_recurring=body.is_recurring,
    )
    session.add(holiday)
    await _flush_holiday(session)

    log.info("holiday.created", holiday_id=holiday.id, org_id=org_id, date=body.date.isoformat())
    return holiday


async def update_holiday(
    org_id: int, holiday_id: int, body: HolidayUpdate, session: AsyncSession
) -> Holiday:
    """Partial update; omitted fields are kept."""
    holiday = await get_holiday(org_id, holiday_id, session)
    if body.date is not None and body.date != holiday.date:
        await _ensure_free_date(org_id, body.date, session, exclude_id=holiday.id)
        holiday.date = body.date
    if body.name is not None:
        holiday.name = body.name
    if body.is_recurring is not None:
        holiday.is_recurring = body.is_recurring
    session.add(holiday)
    await _flush_holiday(session)

    log.info("holiday.updated", holiday_id=holiday.id, org_id=org_id)
    return holiday


async def delete_holiday(org_id: int, holiday_id: int, session: AsyncSession) -> None:
    holiday = await get_holiday(org_id, holiday_id, session)
    await session.delete(holiday)
    await session.flush()
    log.info("holiday.deleted", holiday_id=holiday_id, org_id=org_id)


# ---------------------------------------------------------------------------
# Absences
# ---------------------------------------------------------------------------

def absence_response(absence: AbsenceDay, user: Optional[User]) -> AbsenceResponse:
    return AbsenceResponse(
        id=absence.id,
        user_id=absence.user_id,
        organization_id=absence.organization_id,
        date=absence.date,
        type=absence.type,
        note=absence.note,
        user_first_name=user.first_name if user else None,
        user_last_name=user.last_name if user else None,
    )


async def list_absences(
    ctx: OrgContext,
    session: AsyncSession,
    user_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list[AbsenceResponse]:
    """Members see their own absences; Admin+ see all, optionally for one user."""
    stmt = (
        select(AbsenceDay, User)
        .join(User, User.id == AbsenceDay.user_id)
        .where(AbsenceDay.organization_id == ctx.org_id)
    )
    if not role_at_least(ctx.role, OrgRole.ADMIN):
        stmt = stmt.where(AbsenceDay.user_id == ctx.user_id)
    elif user_id is not None:
        stmt = stmt.where(AbsenceDay.user_id == user_id)
    if date_from is not None:
        stmt = stmt.where(AbsenceDay.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(AbsenceDay.date <= date_to)

    result = await session.execute(stmt.order_by(AbsenceDay.date, AbsenceDay.id))
    return [absence_response(absence, user) for absence, user in result.all()]


async def create_absence(
    org_id: int, user_id: int, body: AbsenceCreate, session: AsyncSession
) -> AbsenceResponse:
    """Record an absence for an active member of the org."""
    await org_service.get_member(org_id, user_id, session)

    existing = await session.execute(
        select(AbsenceDay.id).where(
            AbsenceDay.user_id == user_id,
            AbsenceDay.organization_id == org_id,
            AbsenceDay.date == body.date,
        )
    )
    if existing.first() is not None:
        raise ConflictError("An absence already exists on this date.")

    absence = AbsenceDay(
        user_id=user_id,
        organization_id=org_id,
        date=body.date,
        type=body.type.value,
        note=body.note,
    )
    session.add(absence)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("An absence already exists on this date.")

    log.info(
        "absence.created",
        absence_id=absence.id,
        org_id=org_id,
        user_id=user_id,
        type=absence.type,
    )
    return absence_response(absence, await session.get(User, user_id))


async def delete_absence(ctx: OrgContext, absence_id: int, session: AsyncSession) -> None:
    """Members remove their own absences; Admin+ remove anyone's."""
    absence = await session.get(AbsenceDay, absence_id)
    if not absence or absence.organization_id != ctx.org_id:
        raise NotFoundError("Absence not found.")
    if absence.user_id != ctx.user_id and not role_at_least(ctx.role, OrgRole.ADMIN):
        raise ForbiddenError("You can only delete your own absences.")

    await session.delete(absence)
    await session.flush()
    log.info("absence.deleted", absence_id=absence_id, org_id=ctx.org_id, by=ctx.user_id)
