"""
Work schedule endpoints (org-scoped).

Self (WorkScheduleChangeMode must be Allowed for writes):
GET    /api/v1/organizations/{orgSlug}/work-schedule
PUT    /api/v1/organizations/{orgSlug}/work-schedule
GET    /api/v1/organizations/{orgSlug}/schedule-periods
POST   /api/v1/organizations/{orgSlug}/schedule-periods
PUT    /api/v1/organizations/{orgSlug}/schedule-periods/{periodId}
DELETE /api/v1/organizations/{orgSlug}/schedule-periods/{periodId}

Admin+ (not rule-gated):
GET    /api/v1/organizations/{orgSlug}/members/{memberId}/work-schedule
PUT    /api/v1/organizations/{orgSlug}/members/{memberId}/work-schedule
GET    /api/v1/organizations/{orgSlug}/members/{memberId}/schedule-periods
POST   /api/v1/organizations/{orgSlug}/members/{memberId}/schedule-periods
PUT    /api/v1/organizations/{orgSlug}/members/{memberId}/schedule-periods/{periodId}
DELETE /api/v1/organizations/{orgSlug}/members/{memberId}/schedule-periods/{periodId}
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import OrgContext, require_admin, require_member
from app.core.database import get_session
from app.services import organizations as org_service
from app.services import schedules as schedule_service
from timekeep_shared.schemas.schedules import (
    WorkSchedulePeriodCreate,
    WorkSchedulePeriodListResponse,
    WorkSchedulePeriodResponse,
    WorkSchedulePeriodUpdate,
    WorkScheduleResponse,
    WorkScheduleUpdate,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Self
# ---------------------------------------------------------------------------

@router.get("/work-schedule", response_model=WorkScheduleResponse)
async def get_my_work_schedule(
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    """Effective schedule for today (active period or membership default)."""
    return await schedule_service.get_work_schedule(ctx.org, ctx.membership, session)


@router.put("/work-schedule", response_model=WorkScheduleResponse)
async def update_my_work_schedule(
    body: WorkScheduleUpdate,
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    return await schedule_service.update_work_schedule(
        ctx.org, ctx.membership, body, session
    )


@router.get("/schedule-periods", response_model=WorkSchedulePeriodListResponse)
async def list_my_periods(
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    periods = await schedule_service.list_periods(ctx.user_id, ctx.org_id, session)
    return WorkSchedulePeriodListResponse(
        data=[schedule_service.period_response(p) for p in periods]
    )


@router.post("/schedule-periods", response_model=WorkSchedulePeriodResponse, status_code=201)
async def create_my_period(
    body: WorkSchedulePeriodCreate,
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    period = await schedule_service.create_period(ctx.org, ctx.user_id, body, session)
    return schedule_service.period_response(period)


@router.put("/schedule-periods/{periodId}", response_model=WorkSchedulePeriodResponse)
async def update_my_period(
    periodId: int,
    body: WorkSchedulePeriodUpdate,
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    period = await schedule_service.update_period(
        ctx.org, ctx.user_id, periodId, body, session
    )
    return schedule_service.period_response(period)


@router.delete("/schedule-periods/{periodId}", status_code=204)
async def delete_my_period(
    periodId: int,
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    await schedule_service.delete_period(ctx.org, ctx.user_id, periodId, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Admin: member schedules
# ---------------------------------------------------------------------------

@router.get("/members/{memberId}/work-schedule", response_model=WorkScheduleResponse)
async def get_member_work_schedule(
    memberId: int,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    membership = await org_service.get_member(ctx.org_id, memberId, session)
    return await schedule_service.get_work_schedule(ctx.org, membership, session)


@router.put("/members/{memberId}/work-schedule", response_model=WorkScheduleResponse)
async def update_member_work_schedule(
    memberId: int,
    body: WorkScheduleUpdate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    membership = await org_service.get_member(ctx.org_id, memberId, session)
    return await schedule_service.update_work_schedule(
        ctx.org, membership, body, session, as_admin=True
    )


@router.get(
    "/members/{memberId}/schedule-periods",
    response_model=WorkSchedulePeriodListResponse,
)
async def list_member_periods(
    memberId: int,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    periods = await schedule_service.list_periods(memberId, ctx.org_id, session)
    return WorkSchedulePeriodListResponse(
        data=[schedule_service.period_response(p) for p in periods]
    )


@router.post(
    "/members/{memberId}/schedule-periods",
    response_model=WorkSchedulePeriodResponse,
    status_code=201,
)
async def create_member_period(
    memberId: int,
    body: WorkSchedulePeriodCreate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    period = await schedule_service.create_period(
        ctx.org, memberId, body, session, as_admin=True
    )
    return schedule_service.period_response(period)


@router.put(
    "/members/{memberId}/schedule-periods/{periodId}",
    response_model=WorkSchedulePeriodResponse,
)
async def update_member_period(
    memberId: int,
    periodId: int,
    body: WorkSchedulePeriodUpdate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    period = await schedule_service.update_period(
        ctx.org, memberId, periodId, body, session, as_admin=True
    )
    return schedule_service.period_response(period)


@router.delete("/members/{memberId}/schedule-periods/{periodId}", status_code=204)
async def delete_member_period(
    memberId: int,
    periodId: int,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await schedule_service.delete_period(
        ctx.org, memberId, periodId, session, as_admin=True
    )
    return Response(status_code=204)
