"""
Work schedules - membership default schedule and date-ranged periods.

Periods are inclusive on both ends; an open-ended period (valid_to None)
extends to +infinity. Creating a period is one check-then-close-then-insert
unit under a lock on the member's membership row, so two concurrent creates
cannot both leave an open-ended period behind.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Sequence, Union

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BusinessValidationError, ConflictError, NotFoundError
from app.models.base import utcnow
from app.models.organization import Organization
from app.models.user_org import UserOrganization
from app.models.work_schedule_period import WorkSchedulePeriod
from app.services import organizations as org_service
from app.services.rules import (
    Decision,
    RuleDimension,
    ensure_direct_action_allowed,
    evaluate_for,
    mode_for,
)
from timekeep_shared.schemas.schedules import (
    DailyTargets,
    WorkSchedulePeriodCreate,
    WorkSchedulePeriodResponse,
    WorkSchedulePeriodUpdate,
    WorkScheduleResponse,
    WorkScheduleUpdate,
)

log = structlog.get_logger()

TARGET_FIELDS = ("target_mon", "target_tue", "target_wed", "target_thu", "target_fri")

ScheduleRecord = Union[UserOrganization, WorkSchedulePeriod]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def apply_schedule_values(
    record: ScheduleRecord,
    weekly_work_hours: Optional[float],
    distribute_evenly: bool,
    targets: DailyTargets,
) -> None:
    """Write weekly hours and daily targets onto a membership or period.

    With ``distribute_evenly`` and weekly hours given, every weekday gets
    ``round(weekly / 5, 2)``. Otherwise only the supplied daily targets are
    written and the rest keep their current value.
    """
    if weekly_work_hours is not None:
        record.weekly_work_hours = weekly_work_hours
        if distribute_evenly:
            daily = round(weekly_work_hours / 5, 2)
            for field in TARGET_FIELDS:
                setattr(record, field, daily)
            return

    for field in TARGET_FIELDS:
        value = getattr(targets, field)
        if value is not None:
            setattr(record, field, value)


def find_covering_period(
    periods: Sequence[WorkSchedulePeriod], as_of: date
) -> Optional[WorkSchedulePeriod]:
    """The period covering ``as_of``; latest valid_from wins a tie."""
    covering = [
        p
        for p in periods
        if p.valid_from <= as_of and (p.valid_to is None or p.valid_to >= as_of)
    ]
    if not covering:
        return None
    return max(covering, key=lambda p: p.valid_from)


def find_overlap(
    periods: Sequence[WorkSchedulePeriod],
    valid_from: date,
    valid_to: Optional[date],
    *,
    exclude_id: Optional[int] = None,
    auto_close: bool = True,
) -> Optional[WorkSchedulePeriod]:
    """First existing period whose inclusive range intersects the new one.

    With ``auto_close`` an open-ended period starting before ``valid_from``
    is not a conflict, since the create path truncates it first.
    """
    new_end = valid_to or date.max
    for period in periods:
        if period.id == exclude_id:
            continue
        existing_end = period.valid_to or date.max
        if valid_from <= existing_end and period.valid_from <= new_end:
            if auto_close and period.valid_to is None and period.valid_from < valid_from:
                continue
            return period
    return None


def _overlap_message(period: WorkSchedulePeriod) -> str:
    end = period.valid_to.isoformat() if period.valid_to else "ongoing"
    return (
        f"This period overlaps with an existing period "
        f"({period.valid_from.isoformat()} to {end}). "
        "Only one schedule period at a time is allowed."
    )


def period_response(period: WorkSchedulePeriod) -> WorkSchedulePeriodResponse:
    return WorkSchedulePeriodResponse.model_validate(period, from_attributes=True)


# ---------------------------------------------------------------------------
# Effective schedule
# ---------------------------------------------------------------------------

async def list_periods(
    user_id: int, org_id: int, session: AsyncSession
) -> list[WorkSchedulePeriod]:
    result = await session.execute(
        select(WorkSchedulePeriod)
        .where(
            WorkSchedulePeriod.user_id == user_id,
            WorkSchedulePeriod.organization_id == org_id,
        )
        .order_by(WorkSchedulePeriod.valid_from)
    )
    return list(result.scalars().all())


async def resolve_schedule(
    membership: UserOrganization, session: AsyncSession, as_of: Optional[date] = None
) -> tuple[ScheduleRecord, date]:
    """The period covering ``as_of`` (default today), else the membership itself."""
    as_of = as_of or utcnow().date()
    periods = await list_periods(membership.user_id, membership.organization_id, session)
    return find_covering_period(periods, as_of) or membership, as_of


async def get_work_schedule(
    org: Organization,
    membership: UserOrganization,
    session: AsyncSession,
    as_of: Optional[date] = None,
) -> WorkScheduleResponse:
    source, as_of = await resolve_schedule(membership, session, as_of)
    return WorkScheduleResponse(
        user_id=membership.user_id,
        organization_id=org.id,
        as_of=as_of,
        period_id=source.id if isinstance(source, WorkSchedulePeriod) else None,
        weekly_work_hours=source.weekly_work_hours,
        target_mon=source.target_mon,
        target_tue=source.target_tue,
        target_wed=source.target_wed,
        target_thu=source.target_thu,
        target_fri=source.target_fri,
        initial_overtime_hours=membership.initial_overtime_hours,
        initial_overtime_mode=mode_for(org, RuleDimension.INITIAL_OVERTIME),
        work_schedule_change_mode=mode_for(org, RuleDimension.WORK_SCHEDULE_CHANGE),
    )


async def update_work_schedule(
    org: Organization,
    membership: UserOrganization,
    body: WorkScheduleUpdate,
    session: AsyncSession,
    *,
    as_admin: bool = False,
) -> WorkScheduleResponse:
    """Merge-update the membership default schedule.

    Self-service updates are gated by the work schedule change mode, and
    the initial overtime field is only honoured when InitialOvertimeMode
    is Allowed.
    """
    if not as_admin:
        ensure_direct_action_allowed(org, RuleDimension.WORK_SCHEDULE_CHANGE)

    apply_schedule_values(membership, body.weekly_work_hours, body.distribute_evenly, body)

    if body.initial_overtime_hours is not None:
        if as_admin or _initial_overtime_direct(org):
            membership.initial_overtime_hours = body.initial_overtime_hours
        else:
            log.info(
                "work_schedule.initial_overtime_ignored",
                org_id=org.id,
                user_id=membership.user_id,
            )

    session.add(membership)
    await session.flush()
    log.info(
        "work_schedule.updated",
        org_id=org.id,
        user_id=membership.user_id,
        as_admin=as_admin,
    )
    return await get_work_schedule(org, membership, session)


def _initial_overtime_direct(org: Organization) -> bool:
    return evaluate_for(org, RuleDimension.INITIAL_OVERTIME) == Decision.ALLOW


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

async def _close_open_period(
    periods: Sequence[WorkSchedulePeriod], new_from: date, session: AsyncSession
) -> None:
    """Truncate the latest open-ended period starting before ``new_from``."""
    candidates = [p for p in periods if p.valid_to is None and p.valid_from < new_from]
    if not candidates:
        return
    open_period = max(candidates, key=lambda p: p.valid_from)
    open_period.valid_to = new_from - timedelta(days=1)
    session.add(open_period)
    await session.flush()
    log.info(
        "schedule_period.auto_closed",
        period_id=open_period.id,
        valid_to=open_period.valid_to.isoformat(),
    )


async def _flush_period(session: AsyncSession) -> None:
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("Only one open-ended schedule period is allowed.")


async def get_period(
    org_id: int, user_id: int, period_id: int, session: AsyncSession
) -> WorkSchedulePeriod:
    period = await session.get(WorkSchedulePeriod, period_id)
    if not period or period.organization_id != org_id or period.user_id != user_id:
        raise NotFoundError("Schedule period not found")
    return period


async def create_period(
    org: Organization,
    user_id: int,
    body: WorkSchedulePeriodCreate,
    session: AsyncSession,
    *,
    as_admin: bool = False,
) -> WorkSchedulePeriod:
    if not as_admin:
        ensure_direct_action_allowed(org, RuleDimension.WORK_SCHEDULE_CHANGE)
    if body.valid_to is not None and body.valid_to < body.valid_from:
        raise BusinessValidationError("ValidTo must be on or after ValidFrom.")

    # serialize period writes for this member
    await org_service.get_member(org.id, user_id, session, for_update=True)

    periods = await list_periods(user_id, org.id, session)
    conflict = find_overlap(periods, body.valid_from, body.valid_to)
    if conflict:
        raise ConflictError(_overlap_message(conflict))
    await _close_open_period(periods, body.valid_from, session)

    period = WorkSchedulePeriod(
        user_id=user_id,
        organization_id=org.id,
        valid_from=body.valid_from,
        valid_to=body.valid_to,
    )
    apply_schedule_values(period, body.weekly_work_hours, body.distribute_evenly, body)
    session.add(period)
    await _flush_period(session)

    log.info(
        "schedule_period.created",
        period_id=period.id,
        org_id=org.id,
        user_id=user_id,
        valid_from=period.valid_from.isoformat(),
        valid_to=period.valid_to.isoformat() if period.valid_to else None,
    )
    return period


async def update_period(
    org: Organization,
    user_id: int,
    period_id: int,
    body: WorkSchedulePeriodUpdate,
    session: AsyncSession,
    *,
    as_admin: bool = False,
) -> WorkSchedulePeriod:
    """Partial update. An explicit ``valid_to: null`` reopens the period."""
    if not as_admin:
        ensure_direct_action_allowed(org, RuleDimension.WORK_SCHEDULE_CHANGE)

    await org_service.get_member(org.id, user_id, session, for_update=True)
    period = await get_period(org.id, user_id, period_id, session)

    valid_from = body.valid_from or period.valid_from
    valid_to = body.valid_to if "valid_to" in body.model_fields_set else period.valid_to
    if valid_to is not None and valid_to < valid_from:
        raise BusinessValidationError("ValidTo must be on or after ValidFrom.")

    periods = await list_periods(user_id, org.id, session)
    conflict = find_overlap(
        periods, valid_from, valid_to, exclude_id=period.id, auto_close=False
    )
    if conflict:
        raise ConflictError(_overlap_message(conflict))

    period.valid_from = valid_from
    period.valid_to = valid_to
    apply_schedule_values(period, body.weekly_work_hours, body.distribute_evenly, body)
    session.add(period)
    await _flush_period(session)

    log.info("schedule_period.updated", period_id=period.id, org_id=org.id, user_id=user_id)
    return period


async def delete_period(
    org: Organization,
    user_id: int,
    period_id: int,
    session: AsyncSession,
    *,
    as_admin: bool = False,
) -> None:
    if not as_admin:
        ensure_direct_action_allowed(org, RuleDimension.WORK_SCHEDULE_CHANGE)
    period = await get_period(org.id, user_id, period_id, session)
    await session.delete(period)
    await session.flush()
    log.info("schedule_period.deleted", period_id=period_id, org_id=org.id, user_id=user_id)
