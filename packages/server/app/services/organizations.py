"""
Organization service - org lifecycle, settings and membership administration.

One Owner per organization is procedural: the Owner role is granted only at
creation (or by another Owner adding a member), can never be changed through
``update_member_role``, and the Owner cannot leave.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import OrgContext, get_active_membership
from app.core.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from app.models.base import utcnow
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrganization
from app.services.rules import RuleDimension, ensure_direct_action_allowed
from timekeep_shared.schemas.common import OrgRole
from timekeep_shared.schemas.organizations import (
    MemberAddRequest,
    MemberResponse,
    OrgCreateRequest,
    OrgResponse,
    OrgSettings,
    OrgSettingsUpdate,
    OrgUpdateRequest,
)

log = structlog.get_logger()


def to_response(org: Organization, member_count: int = 0) -> OrgResponse:
    return OrgResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        description=org.description,
        website=org.website,
        logo_url=org.logo_url,
        member_count=member_count,
        settings=OrgSettings.model_validate(org),
        created_at=org.created_at,
    )


async def count_members(org_id: int, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(UserOrganization)
        .where(
            UserOrganization.organization_id == org_id,
            UserOrganization.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Org lifecycle
# ---------------------------------------------------------------------------

async def list_orgs(session: AsyncSession) -> list[OrgResponse]:
    """All active orgs with their active member counts (join discovery)."""
    counts = (
        select(
            UserOrganization.organization_id,
            func.count().label("member_count"),
        )
        .where(UserOrganization.is_active == True)  # noqa: E712
        .group_by(UserOrganization.organization_id)
        .subquery()
    )
    result = await session.execute(
        select(Organization, func.coalesce(counts.c.member_count, 0))
        .outerjoin(counts, counts.c.organization_id == Organization.id)
        .where(Organization.is_active == True)  # noqa: E712
        .order_by(Organization.name)
    )
    return [to_response(org, count) for org, count in result.all()]


async def create_org(
    req: OrgCreateRequest, creator: User, session: AsyncSession
) -> Organization:
    """Create an org and make the creator its Owner."""
    existing = await session.execute(
        select(Organization).where(Organization.slug == req.slug)
    )
    if existing.scalar_one_or_none():
        raise ConflictError("An organization with this slug already exists")

    org = Organization(
        name=req.name,
        slug=req.slug,
        description=req.description,
        website=req.website,
        logo_url=req.logo_url,
    )
    session.add(org)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("An organization with this slug already exists")

    session.add(
        UserOrganization(
            user_id=creator.id,
            organization_id=org.id,
            role=OrgRole.OWNER.value,
        )
    )
    await session.flush()

    log.info("org.created", org_id=org.id, slug=org.slug, owner_id=creator.id)
    return org


async def update_org(
    org: Organization, req: OrgUpdateRequest, session: AsyncSession
) -> Organization:
    """Update the org profile (partial)."""
    for field, value in req.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(org, field, value)
    org.updated_at = utcnow()
    session.add(org)
    await session.flush()

    log.info("org.updated", org_id=org.id, slug=org.slug)
    return org


async def update_settings(
    org: Organization, req: OrgSettingsUpdate, session: AsyncSession
) -> Organization:
    """Partial update of the rule block; omitted or null fields are kept."""
    changes = req.model_dump(exclude_none=True, mode="json")
    for field, value in changes.items():
        setattr(org, field, value)
    org.updated_at = utcnow()
    session.add(org)
    await session.flush()

    log.info(
        "org.settings_updated",
        org_id=org.id,
        changes=changes,
    )
    return org


async def delete_org(org: Organization, session: AsyncSession) -> None:
    """Soft delete; memberships and history stay in place."""
    org.is_active = False
    org.updated_at = utcnow()
    session.add(org)
    await session.flush()
    log.info("org.deleted", org_id=org.id, slug=org.slug)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

async def activate_membership(
    user_id: int,
    org_id: int,
    session: AsyncSession,
    role: OrgRole = OrgRole.MEMBER,
) -> UserOrganization:
    """Create the membership, or reactivate a previously removed one.

    Raises ConflictError if the user is already an active member.
    """
    result = await session.execute(
        select(UserOrganization).where(
            UserOrganization.user_id == user_id,
            UserOrganization.organization_id == org_id,
        )
    )
    membership = result.scalar_one_or_none()
    if membership and membership.is_active:
        raise ConflictError("User is already a member of this organization")

    if membership:
        membership.is_active = True
        membership.role = role.value
        membership.joined_at = utcnow()
    else:
        membership = UserOrganization(
            user_id=user_id, organization_id=org_id, role=role.value
        )
    session.add(membership)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("User is already a member of this organization")

    log.info("membership.activated", user_id=user_id, org_id=org_id, role=role.value)
    return membership


async def list_members(org_id: int, session: AsyncSession) -> list[MemberResponse]:
    result = await session.execute(
        select(User, UserOrganization)
        .join(UserOrganization, UserOrganization.user_id == User.id)
        .where(
            UserOrganization.organization_id == org_id,
            UserOrganization.is_active == True,  # noqa: E712
        )
        .order_by(UserOrganization.joined_at, User.id)
    )
    return [member_response(user, uo) for user, uo in result.all()]


def member_response(user: User, membership: UserOrganization) -> MemberResponse:
    return MemberResponse(
        user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=membership.role,
        joined_at=membership.joined_at,
        initial_overtime_hours=membership.initial_overtime_hours,
    )


async def get_member(
    org_id: int, user_id: int, session: AsyncSession, *, for_update: bool = False
) -> UserOrganization:
    membership = await get_active_membership(user_id, org_id, session, for_update=for_update)
    if not membership:
        raise NotFoundError("Member not found in this organization")
    return membership


async def add_member(
    ctx: OrgContext, req: MemberAddRequest, session: AsyncSession
) -> MemberResponse:
    """Admin+ adds a user. Only the Owner may grant the Owner role."""
    if req.role == OrgRole.OWNER and ctx.role != OrgRole.OWNER.value:
        raise ForbiddenError("Only the Owner can add another Owner")

    user = await session.get(User, req.user_id)
    if not user or not user.is_active:
        raise NotFoundError("User not found")

    membership = await activate_membership(user.id, ctx.org_id, session, role=req.role)
    log.info("member.added", org_id=ctx.org_id, user_id=user.id, by=ctx.user_id)
    return member_response(user, membership)


async def update_member_role(
    ctx: OrgContext, user_id: int, role: OrgRole, session: AsyncSession
) -> MemberResponse:
    """Owner changes any non-Owner; Admin changes Members only, never to Owner."""
    membership = await get_member(ctx.org_id, user_id, session)

    if membership.role == OrgRole.OWNER.value:
        raise InvalidStateError("Cannot change the Owner's role. Transfer ownership first.")
    if role == OrgRole.OWNER:
        raise InvalidStateError("The Owner role cannot be granted by a role change.")
    if ctx.role == OrgRole.ADMIN.value and membership.role == OrgRole.ADMIN.value:
        raise ForbiddenError("Admins can only change the role of Members")

    previous = membership.role
    membership.role = role.value
    session.add(membership)
    await session.flush()

    log.info(
        "member.role_changed",
        org_id=ctx.org_id,
        user_id=user_id,
        previous=previous,
        role=role.value,
        by=ctx.user_id,
    )
    user = await session.get(User, user_id)
    return member_response(user, membership)


async def remove_member(ctx: OrgContext, user_id: int, session: AsyncSession) -> None:
    """Soft-remove a member. Self-leave is allowed except for the Owner."""
    if ctx.membership is None:
        raise ForbiddenError("You are not a member of this organization")
    membership = await get_member(ctx.org_id, user_id, session)
    is_self = user_id == ctx.user_id

    if is_self and membership.role == OrgRole.OWNER.value:
        raise InvalidStateError(
            "Owner cannot leave. Delete the organization or transfer ownership first."
        )
    if not is_self:
        if ctx.role == OrgRole.MEMBER.value:
            raise ForbiddenError("Administrator access required")
        if ctx.role == OrgRole.ADMIN.value and membership.role != OrgRole.MEMBER.value:
            raise ForbiddenError("Admins can only remove Members")
        if membership.role == OrgRole.OWNER.value:
            raise InvalidStateError("The Owner cannot be removed")

    membership.is_active = False
    session.add(membership)
    await session.flush()
    log.info("member.removed", org_id=ctx.org_id, user_id=user_id, by=ctx.user_id)


async def set_initial_overtime(
    membership: UserOrganization, hours: float, session: AsyncSession
) -> UserOrganization:
    """Write the membership's starting overtime balance (no gating here)."""
    previous: Optional[float] = membership.initial_overtime_hours
    membership.initial_overtime_hours = hours
    session.add(membership)
    await session.flush()
    log.info(
        "member.initial_overtime_set",
        org_id=membership.organization_id,
        user_id=membership.user_id,
        previous=previous,
        hours=hours,
    )
    return membership


async def set_my_initial_overtime(
    ctx: OrgContext, hours: float, session: AsyncSession
) -> UserOrganization:
    """Self-service write; only when InitialOvertimeMode is Allowed."""
    if ctx.membership is None:
        raise ForbiddenError("You are not a member of this organization")
    ensure_direct_action_allowed(ctx.org, RuleDimension.INITIAL_OVERTIME)
    return await set_initial_overtime(ctx.membership, hours, session)
