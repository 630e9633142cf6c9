"""
Pause rules - per-organization break deduction thresholds.

The deduction for a session is the pause of the highest threshold not
exceeding the worked hours (best-matching tier, not cumulative).
"""

from __future__ import annotations

import bisect
from typing import Optional, Sequence

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BusinessValidationError, ConflictError, NotFoundError
from app.models.organization import Organization
from app.models.pause_rule import PauseRule
from app.models.time_entry import TimeEntry

log = structlog.get_logger()

# thresholds closer than this are considered the same tier
THRESHOLD_TOLERANCE = 0.01


def select_pause_minutes(rules: Sequence[PauseRule], work_hours: float) -> Optional[int]:
    """Pause of the tightest rule with ``min_hours <= work_hours``.

    ``rules`` must be sorted by ``min_hours`` ascending. Returns None when no
    rule qualifies.
    """
    thresholds = [rule.min_hours for rule in rules]
    index = bisect.bisect_right(thresholds, work_hours)
    if index == 0:
        return None
    return rules[index - 1].pause_minutes


async def list_rules(org_id: int, session: AsyncSession) -> list[PauseRule]:
    result = await session.execute(
        select(PauseRule)
        .where(PauseRule.organization_id == org_id)
        .order_by(PauseRule.min_hours)
    )
    return list(result.scalars().all())


async def apply_pause_rules(entry: TimeEntry, session: AsyncSession) -> None:
    """Set the entry's pause from its org's rules.

    No-op for personal entries, running entries, or orgs with auto pause
    off. When no rule qualifies the current pause is left as is.
    """
    if entry.organization_id is None or entry.end_time is None:
        return
    org = await session.get(Organization, entry.organization_id)
    if org is None or not org.auto_pause_enabled:
        return

    work_hours = (entry.end_time - entry.start_time).total_seconds() / 3600
    rules = await list_rules(org.id, session)
    minutes = select_pause_minutes(rules, work_hours)
    if minutes is None:
        return

    entry.pause_duration_minutes = minutes
    log.info(
        "pause_rule.applied",
        entry_id=entry.id,
        org_id=org.id,
        work_hours=round(work_hours, 2),
        pause_minutes=minutes,
    )


# ---------------------------------------------------------------------------
# CRUD (Admin+ for writes)
# ---------------------------------------------------------------------------

def _validate(min_hours: float, pause_minutes: int) -> None:
    if min_hours <= 0:
        raise BusinessValidationError("MinHours must be greater than 0.")
    if pause_minutes <= 0:
        raise BusinessValidationError("PauseMinutes must be greater than 0.")


async def _ensure_unique_threshold(
    org_id: int,
    min_hours: float,
    session: AsyncSession,
    exclude_id: Optional[int] = None,
) -> None:
    for rule in await list_rules(org_id, session):
        if rule.id == exclude_id:
            continue
        if abs(rule.min_hours - min_hours) < THRESHOLD_TOLERANCE:
            raise ConflictError("A pause rule with this threshold already exists.")


async def _flush(session: AsyncSession) -> None:
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("A pause rule with this threshold already exists.")


async def get_rule(org_id: int, rule_id: int, session: AsyncSession) -> PauseRule:
    rule = await session.get(PauseRule, rule_id)
    if not rule or rule.organization_id != org_id:
        raise NotFoundError("Pause rule not found.")
    return rule


async def create_rule(
    org_id: int, min_hours: float, pause_minutes: int, session: AsyncSession
) -> PauseRule:
    _validate(min_hours, pause_minutes)
    await _ensure_unique_threshold(org_id, min_hours, session)

    rule = PauseRule(organization_id=org_id, min_hours=min_hours, pause_minutes=pause_minutes)
    session.add(rule)
    await _flush(session)

    log.info(
        "pause_rule.created",
        rule_id=rule.id,
        org_id=org_id,
        min_hours=min_hours,
        pause_minutes=pause_minutes,
    )
    return rule


async def update_rule(
    org_id: int,
    rule_id: int,
    min_hours: float,
    pause_minutes: int,
    session: AsyncSession,
) -> PauseRule:
    rule = await get_rule(org_id, rule_id, session)
    _validate(min_hours, pause_minutes)
    await _ensure_unique_threshold(org_id, min_hours, session, exclude_id=rule.id)

    rule.min_hours = min_hours
    rule.pause_minutes = pause_minutes
    session.add(rule)
    await _flush(session)

    log.info("pause_rule.updated", rule_id=rule.id, org_id=org_id)
    return rule


async def delete_rule(org_id: int, rule_id: int, session: AsyncSession) -> None:
    rule = await get_rule(org_id, rule_id, session)
    await session.delete(rule)
    await session.flush()
    log.info("pause_rule.deleted", rule_id=rule_id, org_id=org_id)
