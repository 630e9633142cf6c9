"""
Time tracking - start/stop sessions, history, edits, and the Admin+
per-member overview of an organization.

At most one entry per user is running; the partial unique index on
time_entries backs the force-stop in ``start_entry``. Edits to org entries
go through the RuleMode evaluator (past entries and pause separately).
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, time, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import get_active_membership
from app.core.errors import (
    BusinessValidationError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from app.models.base import to_utc, utcnow
from app.models.organization import Organization
from app.models.time_entry import TimeEntry
from app.models.user import User
from app.models.user_org import UserOrganization
from app.services.pause_rules import apply_pause_rules
from app.services.rules import RuleDimension, ensure_direct_action_allowed
from timekeep_shared.schemas.time_entries import (
    MemberTimeOverview,
    TimeEntryResponse,
    TimeEntryStart,
    TimeEntryStop,
    TimeEntryUpdate,
    TimeOverviewResponse,
)

log = structlog.get_logger()

MAX_HISTORY_LIMIT = 10000


def to_response(
    entry: TimeEntry,
    org_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TimeEntryResponse:
    """Durations are in minutes; a running entry is measured up to ``now``."""
    end = entry.end_time or (now or utcnow())
    duration = (end - entry.start_time).total_seconds() / 60
    net = max(0.0, duration - entry.pause_duration_minutes)
    return TimeEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        organization_id=entry.organization_id,
        organization_name=org_name,
        description=entry.description,
        start_time=entry.start_time,
        end_time=entry.end_time,
        is_running=entry.is_running,
        duration_minutes=round(duration, 2),
        pause_duration_minutes=entry.pause_duration_minutes,
        pause_is_manual=entry.pause_is_manual,
        net_duration_minutes=round(net, 2),
        created_at=entry.created_at,
    )


async def entry_response(entry: TimeEntry, session: AsyncSession) -> TimeEntryResponse:
    org_name = None
    if entry.organization_id is not None:
        org = await session.get(Organization, entry.organization_id)
        org_name = org.name if org else None
    return to_response(entry, org_name)


async def _get_running(user_id: int, session: AsyncSession) -> Optional[TimeEntry]:
    result = await session.execute(
        select(TimeEntry).where(
            TimeEntry.user_id == user_id,
            TimeEntry.is_running == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


async def _stop(entry: TimeEntry, session: AsyncSession) -> None:
    entry.end_time = utcnow()
    entry.is_running = False
    entry.updated_at = utcnow()
    if not entry.pause_is_manual:
        await apply_pause_rules(entry, session)
    session.add(entry)
    await session.flush()


async def _resolve_member_org(
    user_id: int,
    session: AsyncSession,
    org_id: Optional[int] = None,
    org_slug: Optional[str] = None,
) -> Optional[Organization]:
    """Org named by id or slug; the user must be an active member of it."""
    if org_id is None and not org_slug:
        return None

    stmt = select(Organization).where(Organization.is_active == True)  # noqa: E712
    if org_id is not None:
        stmt = stmt.where(Organization.id == org_id)
    else:
        stmt = stmt.where(Organization.slug == org_slug)
    result = await session.execute(stmt)
    org = result.scalar_one_or_none()
    if not org:
        raise NotFoundError("Organization not found.")

    if not await get_active_membership(user_id, org.id, session):
        raise ForbiddenError("You are not a member of this organization.")
    return org


# ---------------------------------------------------------------------------
# Start / stop
# ---------------------------------------------------------------------------

async def start_entry(
    user: User, body: TimeEntryStart, session: AsyncSession
) -> TimeEntryResponse:
    """Start a session, force-stopping the one already running."""
    org = await _resolve_member_org(
        user.id, session, org_id=body.organization_id, org_slug=body.organization_slug
    )

    running = await _get_running(user.id, session)
    if running:
        await _stop(running, session)
        log.info("time_entry.force_stopped", entry_id=running.id, user_id=user.id)

    entry = TimeEntry(
        user_id=user.id,
        organization_id=org.id if org else None,
        description=body.description,
        start_time=utcnow(),
        is_running=True,
    )
    session.add(entry)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("Another time entry was started concurrently.")

    log.info("time_entry.started", entry_id=entry.id, user_id=user.id, org_id=entry.organization_id)
    return to_response(entry, org.name if org else None)


async def stop_entry(
    user: User, body: Optional[TimeEntryStop], session: AsyncSession
) -> TimeEntryResponse:
    running = await _get_running(user.id, session)
    if not running:
        raise NotFoundError("No running time entry found.")

    if body is not None and body.description is not None:
        running.description = body.description
    await _stop(running, session)

    log.info(
        "time_entry.stopped",
        entry_id=running.id,
        user_id=user.id,
        pause_minutes=running.pause_duration_minutes,
    )
    return await entry_response(running, session)


async def current_entry(user: User, session: AsyncSession) -> TimeEntryResponse:
    running = await _get_running(user.id, session)
    if not running:
        raise NotFoundError("No running time entry.")
    return await entry_response(running, session)


async def history(
    user: User,
    session: AsyncSession,
    organization_id: Optional[int] = None,
    start_from: Optional[datetime] = None,
    start_to: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[TimeEntryResponse]:
    """The caller's entries, newest start first."""
    stmt = (
        select(TimeEntry, Organization.name)
        .outerjoin(Organization, Organization.id == TimeEntry.organization_id)
        .where(TimeEntry.user_id == user.id)
    )
    if organization_id is not None:
        stmt = stmt.where(TimeEntry.organization_id == organization_id)
    if start_from is not None:
        stmt = stmt.where(TimeEntry.start_time >= to_utc(start_from))
    if start_to is not None:
        stmt = stmt.where(TimeEntry.start_time <= to_utc(start_to))
    stmt = (
        stmt.order_by(TimeEntry.start_time.desc(), TimeEntry.id.desc())
        .offset(max(offset, 0))
        .limit(max(min(limit, MAX_HISTORY_LIMIT), 0))
    )
    result = await session.execute(stmt)
    now = utcnow()
    return [to_response(entry, name, now) for entry, name in result.all()]


# ---------------------------------------------------------------------------
# Edit / delete
# ---------------------------------------------------------------------------

async def _get_own(user_id: int, entry_id: int, session: AsyncSession) -> TimeEntry:
    entry = await session.get(TimeEntry, entry_id)
    if not entry or entry.user_id != user_id:
        raise NotFoundError("Time entry not found.")
    return entry


async def _gate_org(
    org_id: Optional[int], dimension: RuleDimension, session: AsyncSession
) -> None:
    if org_id is None:
        return
    org = await session.get(Organization, org_id)
    if org is not None and org.is_active:
        ensure_direct_action_allowed(org, dimension)


async def update_entry(
    user: User, entry_id: int, body: TimeEntryUpdate, session: AsyncSession
) -> TimeEntryResponse:
    """Edit a stopped entry.

    Pause handling: a number is a sticky manual override, an explicit null
    clears the override, and when the field is omitted a non-manual pause
    is recomputed from the org's rules.
    """
    entry = await _get_own(user.id, entry_id, session)
    if entry.is_running:
        raise InvalidStateError("Cannot edit a running time entry. Stop it first.")

    await _gate_org(entry.organization_id, RuleDimension.EDIT_PAST_ENTRIES, session)

    if body.organization_id is not None and body.organization_id != entry.organization_id:
        if body.organization_id == 0:
            entry.organization_id = None
        else:
            target = await _resolve_member_org(user.id, session, org_id=body.organization_id)
            ensure_direct_action_allowed(target, RuleDimension.EDIT_PAST_ENTRIES)
            entry.organization_id = target.id

    if body.start_time is not None:
        entry.start_time = to_utc(body.start_time)
    if body.end_time is not None:
        entry.end_time = to_utc(body.end_time)
    if body.description is not None:
        entry.description = body.description

    if entry.end_time is not None and entry.end_time <= entry.start_time:
        raise BusinessValidationError("End time must be after start time.")

    pause_set = "pause_duration_minutes" in body.model_fields_set
    if pause_set and body.pause_duration_minutes is not None:
        await _gate_org(entry.organization_id, RuleDimension.EDIT_PAUSE, session)
        entry.pause_duration_minutes = max(0, body.pause_duration_minutes)
        entry.pause_is_manual = True
    elif pause_set or not entry.pause_is_manual:
        entry.pause_is_manual = False
        entry.pause_duration_minutes = 0
        await apply_pause_rules(entry, session)

    entry.updated_at = utcnow()
    session.add(entry)
    await session.flush()

    log.info(
        "time_entry.updated",
        entry_id=entry.id,
        user_id=user.id,
        pause_minutes=entry.pause_duration_minutes,
        pause_is_manual=entry.pause_is_manual,
    )
    return await entry_response(entry, session)


async def delete_entry(user: User, entry_id: int, session: AsyncSession) -> None:
    entry = await _get_own(user.id, entry_id, session)
    await session.delete(entry)
    await session.flush()
    log.info("time_entry.deleted", entry_id=entry_id, user_id=user.id)


# ---------------------------------------------------------------------------
# Organization overview (Admin+)
# ---------------------------------------------------------------------------

def report_range(
    start_from: Optional[datetime] = None,
    start_to: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """Half-open reporting window; defaults to the current Monday-to-Monday week."""
    if start_from is None:
        today = (now or utcnow()).date()
        monday = today - timedelta(days=today.weekday())
        start_from = datetime.combine(monday, time.min, tzinfo=timezone.utc)
    start_from = to_utc(start_from)
    end = to_utc(start_to) if start_to is not None else start_from + timedelta(days=7)
    if end <= start_from:
        raise BusinessValidationError("The range end must be after its start.")
    return start_from, end


async def time_overview(
    org_id: int,
    session: AsyncSession,
    start_from: Optional[datetime] = None,
    start_to: Optional[datetime] = None,
) -> TimeOverviewResponse:
    """Tracked and net minutes per active member over stopped org entries."""
    range_from, range_to = report_range(start_from, start_to)

    members = await session.execute(
        select(User, UserOrganization)
        .join(UserOrganization, UserOrganization.user_id == User.id)
        .where(
            UserOrganization.organization_id == org_id,
            UserOrganization.is_active == True,  # noqa: E712
        )
        .order_by(User.last_name, User.first_name, User.id)
    )
    entries = await session.execute(
        select(TimeEntry).where(
            TimeEntry.organization_id == org_id,
            TimeEntry.is_running == False,  # noqa: E712
            TimeEntry.start_time >= range_from,
            TimeEntry.start_time < range_to,
        )
    )
    by_user: dict[int, list[TimeEntry]] = defaultdict(list)
    for entry in entries.scalars().all():
        by_user[entry.user_id].append(entry)

    rows = []
    for user, membership in members.all():
        own = by_user.get(user.id, [])
        total = sum(
            (e.end_time - e.start_time).total_seconds() / 60 for e in own if e.end_time
        )
        pause = sum(e.pause_duration_minutes for e in own)
        rows.append(
            MemberTimeOverview(
                user_id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                email=user.email,
                role=membership.role,
                weekly_work_hours=membership.weekly_work_hours,
                total_tracked_minutes=round(total, 1),
                net_tracked_minutes=round(total - pause, 1),
                entry_count=len(own),
            )
        )
    return TimeOverviewResponse(range_from=range_from, range_to=range_to, data=rows)


async def member_entries(
    org_id: int,
    user_id: int,
    session: AsyncSession,
    start_from: Optional[datetime] = None,
    start_to: Optional[datetime] = None,
) -> list[TimeEntryResponse]:
    """One member's entries in the org within the window, newest first."""
    range_from, range_to = report_range(start_from, start_to)
    org = await session.get(Organization, org_id)
    result = await session.execute(
        select(TimeEntry)
        .where(
            TimeEntry.user_id == user_id,
            TimeEntry.organization_id == org_id,
            TimeEntry.start_time >= range_from,
            TimeEntry.start_time < range_to,
        )
        .order_by(TimeEntry.start_time.desc(), TimeEntry.id.desc())
    )
    now = utcnow()
    return [to_response(entry, org.name, now) for entry in result.scalars().all()]
