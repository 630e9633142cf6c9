"""
Organization API endpoints.

GET    /api/v1/organizations                      - List active orgs
POST   /api/v1/organizations                      - Create an org (creator becomes Owner)
GET    /api/v1/organizations/notifications        - Pending requests in orgs where caller is Admin+
GET    /api/v1/organizations/my-requests          - Caller's own requests across orgs
GET    /api/v1/organizations/{orgSlug}            - Get org details and settings
PUT    /api/v1/organizations/{orgSlug}            - Update org profile (Admin+)
DELETE /api/v1/organizations/{orgSlug}            - Soft-delete org (Owner)
PUT    /api/v1/organizations/{orgSlug}/settings   - Update rule modes (Admin+)
GET    /api/v1/organizations/{orgSlug}/members    - List members
POST   /api/v1/organizations/{orgSlug}/members    - Add member (Admin+)
PUT    /api/v1/organizations/{orgSlug}/members/{userId}  - Change role (Admin+)
DELETE /api/v1/organizations/{orgSlug}/members/{userId}  - Remove member / leave
PUT    /api/v1/organizations/{orgSlug}/members/{userId}/initial-overtime - Set member overtime (Admin+)
PUT    /api/v1/organizations/{orgSlug}/initial-overtime - Set own overtime (InitialOvertimeMode)
GET    /api/v1/organizations/{orgSlug}/time-overview - Per-member totals for a range (Admin+)
GET    /api/v1/organizations/{orgSlug}/member-entries/{userId} - One member's entries (Admin+)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    OrgContext,
    get_current_user,
    get_org_context,
    require_admin,
    require_member,
    require_owner,
)
from app.core.database import get_session
from app.models.user import User
from app.services import organizations as org_service
from app.services import requests as request_service
from app.services import time_entries as entry_service
from timekeep_shared.schemas.common import RequestType
from timekeep_shared.schemas.organizations import (
    InitialOvertimeResponse,
    InitialOvertimeUpdate,
    MemberAddRequest,
    MemberListResponse,
    MemberResponse,
    MemberRoleUpdate,
    OrgCreateRequest,
    OrgListResponse,
    OrgResponse,
    OrgSettingsUpdate,
    OrgUpdateRequest,
)
from timekeep_shared.schemas.requests import (
    AdminNotificationResponse,
    OrgRequestListResponse,
)
from timekeep_shared.schemas.time_entries import TimeEntryListResponse, TimeOverviewResponse

# ---------------------------------------------------------------------------
# Non-org-scoped routes (no orgSlug in path)
# ---------------------------------------------------------------------------
router_global = APIRouter()


@router_global.get("/organizations", response_model=OrgListResponse, tags=["Organizations"])
async def list_orgs(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List active organizations (used to discover orgs to join)."""
    return OrgListResponse(data=await org_service.list_orgs(session))


@router_global.post(
    "/organizations", response_model=OrgResponse, status_code=201, tags=["Organizations"]
)
async def create_org(
    body: OrgCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes the Owner."""
    org = await org_service.create_org(body, user, session)
    return org_service.to_response(org, member_count=1)


@router_global.get(
    "/organizations/notifications",
    response_model=AdminNotificationResponse,
    tags=["Requests"],
)
async def admin_notifications(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Pending requests across every org where the caller is Admin or Owner."""
    return await request_service.admin_notifications(user.id, session)


@router_global.get(
    "/organizations/my-requests",
    response_model=OrgRequestListResponse,
    tags=["Requests"],
)
async def my_requests(
    type: Optional[RequestType] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """The caller's requests across all orgs, newest first."""
    items = await request_service.my_requests(user.id, session, request_type=type)
    return OrgRequestListResponse(data=items)


# ---------------------------------------------------------------------------
# Org-scoped routes (orgSlug in path)
# ---------------------------------------------------------------------------
router_scoped = APIRouter()


@router_scoped.get("", response_model=OrgResponse, tags=["Organizations"])
async def get_org(
    ctx: OrgContext = Depends(get_org_context),
    session: AsyncSession = Depends(get_session),
):
    """Get org details including the rule settings."""
    count = await org_service.count_members(ctx.org_id, session)
    return org_service.to_response(ctx.org, count)


@router_scoped.put("", response_model=OrgResponse, tags=["Organizations"])
async def update_org(
    body: OrgUpdateRequest,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Update the org profile (Admin+)."""
    org = await org_service.update_org(ctx.org, body, session)
    count = await org_service.count_members(org.id, session)
    return org_service.to_response(org, count)


@router_scoped.delete("", status_code=204, tags=["Organizations"])
async def delete_org(
    ctx: OrgContext = Depends(require_owner),
    session: AsyncSession = Depends(get_session),
):
    """Soft-delete the organization (Owner only)."""
    await org_service.delete_org(ctx.org, session)
    return Response(status_code=204)


@router_scoped.put("/settings", response_model=OrgResponse, tags=["Organizations"])
async def update_settings(
    body: OrgSettingsUpdate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Update rule modes and auto pause (Admin+). Omitted fields are kept."""
    org = await org_service.update_settings(ctx.org, body, session)
    count = await org_service.count_members(org.id, session)
    return org_service.to_response(org, count)


@router_scoped.get("/members", response_model=MemberListResponse, tags=["Members"])
async def list_members(
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    return MemberListResponse(data=await org_service.list_members(ctx.org_id, session))


@router_scoped.post(
    "/members", response_model=MemberResponse, status_code=201, tags=["Members"]
)
async def add_member(
    body: MemberAddRequest,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Add a user to the org (Admin+). Only the Owner may add an Owner."""
    return await org_service.add_member(ctx, body, session)


@router_scoped.put("/members/{userId}", response_model=MemberResponse, tags=["Members"])
async def update_member_role(
    userId: int,
    body: MemberRoleUpdate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.update_member_role(ctx, userId, body.role, session)


@router_scoped.delete("/members/{userId}", status_code=204, tags=["Members"])
async def remove_member(
    userId: int,
    ctx: OrgContext = Depends(get_org_context),
    session: AsyncSession = Depends(get_session),
):
    """Remove a member, or leave the org when ``userId`` is the caller."""
    await org_service.remove_member(ctx, userId, session)
    return Response(status_code=204)


@router_scoped.put(
    "/members/{userId}/initial-overtime",
    response_model=InitialOvertimeResponse,
    tags=["Members"],
)
async def set_member_initial_overtime(
    userId: int,
    body: InitialOvertimeUpdate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Set a member's initial overtime balance (Admin+, not rule-gated)."""
    membership = await org_service.get_member(ctx.org_id, userId, session)
    membership = await org_service.set_initial_overtime(
        membership, body.initial_overtime_hours, session
    )
    return InitialOvertimeResponse(
        user_id=membership.user_id,
        initial_overtime_hours=membership.initial_overtime_hours,
    )


@router_scoped.put(
    "/initial-overtime", response_model=InitialOvertimeResponse, tags=["Members"]
)
async def set_my_initial_overtime(
    body: InitialOvertimeUpdate,
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    """Set own initial overtime directly (only when the mode is Allowed)."""
    membership = await org_service.set_my_initial_overtime(
        ctx, body.initial_overtime_hours, session
    )
    return InitialOvertimeResponse(
        user_id=membership.user_id,
        initial_overtime_hours=membership.initial_overtime_hours,
    )


@router_scoped.get(
    "/time-overview", response_model=TimeOverviewResponse, tags=["Time Overview"]
)
async def time_overview(
    start_from: Optional[datetime] = Query(None, alias="from"),
    start_to: Optional[datetime] = Query(None, alias="to"),
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Tracked and net minutes per member (Admin+). Defaults to the current week."""
    return await entry_service.time_overview(ctx.org_id, session, start_from, start_to)


@router_scoped.get(
    "/member-entries/{userId}", response_model=TimeEntryListResponse, tags=["Time Overview"]
)
async def member_entries(
    userId: int,
    start_from: Optional[datetime] = Query(None, alias="from"),
    start_to: Optional[datetime] = Query(None, alias="to"),
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """One member's entries in this org, newest first (Admin+)."""
    items = await entry_service.member_entries(
        ctx.org_id, userId, session, start_from, start_to
    )
    return TimeEntryListResponse(data=items)
