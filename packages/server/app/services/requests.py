"""
Request lifecycle - create, list and resolve OrgRequests.

A request is created Pending by the requesting user (join requests under an
Allowed join policy are written already Accepted, together with the
membership), resolved exactly once by an Admin+, and terminal afterwards.
At most one Pending request per (user, org, type) exists; the partial unique
index on org_requests backs the pre-check under concurrent creates.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlmodel import select

from app.core.auth import OrgContext, get_active_membership
from app.core.errors import (
    BusinessValidationError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    RuleModeViolation,
)
from app.models.base import utcnow
from app.models.org_request import OrgRequest
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrganization
from app.services import organizations as org_service
from app.services.rules import (
    REQUEST_DIMENSIONS,
    Decision,
    RuleDimension,
    ensure_request_admissible,
    evaluate_for,
)
from timekeep_shared.schemas.common import OrgRole, RequestStatus, RequestType
from timekeep_shared.schemas.requests import (
    AdminNotificationResponse,
    OrgRequestCreate,
    OrgRequestResponse,
    parse_request_data,
)

log = structlog.get_logger()

Responder = aliased(User)

ADMIN_ROLES = (OrgRole.ADMIN.value, OrgRole.OWNER.value)


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------

def _with_people():
    """OrgRequest joined with requester, organization and (optional) responder."""
    return (
        select(OrgRequest, User, Organization, Responder)
        .join(User, User.id == OrgRequest.user_id)
        .join(Organization, Organization.id == OrgRequest.organization_id)
        .outerjoin(Responder, Responder.id == OrgRequest.responded_by_user_id)
    )


def _to_response(
    req: OrgRequest,
    user: User,
    org: Organization,
    responder: Optional[User],
) -> OrgRequestResponse:
    return OrgRequestResponse(
        id=req.id,
        user_id=req.user_id,
        user_first_name=user.first_name,
        user_last_name=user.last_name,
        user_email=user.email,
        organization_id=org.id,
        organization_name=org.name,
        organization_slug=org.slug,
        type=req.type,
        status=req.status,
        message=req.message,
        related_entity_id=req.related_entity_id,
        request_data=req.request_data,
        created_at=req.created_at,
        responded_at=req.responded_at,
        responded_by_user_id=req.responded_by_user_id,
        responded_by_name=responder.full_name if responder else None,
    )


async def load_response(request_id: int, session: AsyncSession) -> OrgRequestResponse:
    result = await session.execute(_with_people().where(OrgRequest.id == request_id))
    row = result.one()
    return _to_response(*row)


async def _load_many(stmt, session: AsyncSession) -> list[OrgRequestResponse]:
    stmt = stmt.order_by(OrgRequest.created_at.desc(), OrgRequest.id.desc())
    result = await session.execute(stmt)
    return [_to_response(*row) for row in result.all()]


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

async def _pending_exists(
    user_id: int, org_id: int, request_type: RequestType, session: AsyncSession
) -> bool:
    result = await session.execute(
        select(OrgRequest.id).where(
            OrgRequest.user_id == user_id,
            OrgRequest.organization_id == org_id,
            OrgRequest.type == request_type.value,
            OrgRequest.status == RequestStatus.PENDING.value,
        )
    )
    return result.first() is not None


async def _auto_accept_join(
    user: User, org: Organization, body: OrgRequestCreate, session: AsyncSession
) -> OrgRequest:
    """Allowed join policy: audit row already Accepted plus the membership.

    A join request left Pending from before the policy switched to Allowed
    becomes that audit row, so it does not linger in admin notifications.
    """
    now = utcnow()
    result = await session.execute(
        select(OrgRequest)
        .where(
            OrgRequest.user_id == user.id,
            OrgRequest.organization_id == org.id,
            OrgRequest.type == RequestType.JOIN_ORGANIZATION.value,
            OrgRequest.status == RequestStatus.PENDING.value,
        )
        .with_for_update()
    )
    req = result.scalar_one_or_none()
    if req is None:
        req = OrgRequest(
            user_id=user.id,
            organization_id=org.id,
            type=RequestType.JOIN_ORGANIZATION.value,
            message=body.message,
            created_at=now,
        )
    else:
        log.info("org_request.stale_join_resolved", request_id=req.id, org_id=org.id)
        if body.message is not None:
            req.message = body.message

    req.status = RequestStatus.ACCEPTED.value
    req.responded_at = now
    session.add(req)
    await org_service.activate_membership(user.id, org.id, session)
    await session.flush()

    log.info("org_request.auto_accepted", request_id=req.id, org_id=org.id, user_id=user.id)
    return req


async def create_request(
    user: User, org: Organization, body: OrgRequestCreate, session: AsyncSession
) -> OrgRequestResponse:
    """Admit and persist a request; see module docstring for the lifecycle."""
    request_type = body.type
    membership = await get_active_membership(user.id, org.id, session)

    if request_type == RequestType.JOIN_ORGANIZATION:
        if membership:
            raise ConflictError("You are already a member of this organization.")
        decision = evaluate_for(org, RuleDimension.JOIN)
        if decision == Decision.DENY:
            raise RuleModeViolation(
                "This organization does not accept join requests. Ask an admin to add you."
            )
        if decision == Decision.ALLOW:
            req = await _auto_accept_join(user, org, body, session)
            return await load_response(req.id, session)
    else:
        if not membership:
            raise ForbiddenError("You must be a member of this organization.")
        ensure_request_admissible(org, REQUEST_DIMENSIONS[request_type])

    try:
        parse_request_data(request_type, body.request_data)
    except ValueError as exc:
        raise BusinessValidationError(f"Invalid request data: {exc}")

    if await _pending_exists(user.id, org.id, request_type, session):
        raise ConflictError(
            "You already have a pending request of this type for this organization."
        )

    req = OrgRequest(
        user_id=user.id,
        organization_id=org.id,
        type=request_type.value,
        status=RequestStatus.PENDING.value,
        message=body.message,
        related_entity_id=body.related_entity_id,
        request_data=body.request_data,
    )
    session.add(req)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError(
            "You already have a pending request of this type for this organization."
        )

    log.info(
        "org_request.created",
        request_id=req.id,
        org_id=org.id,
        user_id=user.id,
        type=request_type.value,
    )
    return await load_response(req.id, session)


# ---------------------------------------------------------------------------
# Respond
# ---------------------------------------------------------------------------

async def _apply_initial_overtime(req: OrgRequest, session: AsyncSession) -> None:
    try:
        payload = parse_request_data(RequestType.SET_INITIAL_OVERTIME, req.request_data)
    except ValueError:
        # Only rows written before payload validation existed can get here
        log.warning(
            "org_request.unparseable_payload",
            request_id=req.id,
            request_data=req.request_data,
        )
        return

    membership = await get_active_membership(req.user_id, req.organization_id, session)
    if membership is None:
        log.info("org_request.requester_not_member", request_id=req.id)
        return
    await org_service.set_initial_overtime(membership, payload.hours, session)


async def respond_to_request(
    ctx: OrgContext, request_id: int, accept: bool, session: AsyncSession
) -> OrgRequestResponse:
    """Accept or decline a Pending request exactly once (Admin+ of its org)."""
    result = await session.execute(
        select(OrgRequest)
        .where(
            OrgRequest.id == request_id,
            OrgRequest.organization_id == ctx.org_id,
        )
        .with_for_update()
    )
    req = result.scalar_one_or_none()
    if not req:
        raise NotFoundError("Request not found.")
    if req.status != RequestStatus.PENDING.value:
        raise InvalidStateError("This request has already been responded to.")

    req.status = (RequestStatus.ACCEPTED if accept else RequestStatus.DECLINED).value
    req.responded_at = utcnow()
    req.responded_by_user_id = ctx.user_id
    session.add(req)

    if accept:
        request_type = RequestType(req.type)
        if request_type == RequestType.JOIN_ORGANIZATION:
            await org_service.activate_membership(req.user_id, req.organization_id, session)
        elif request_type == RequestType.SET_INITIAL_OVERTIME:
            await _apply_initial_overtime(req, session)
        # EditPastEntry / EditPause: approval carries no side effect

    await session.flush()
    log.info(
        "org_request.responded",
        request_id=req.id,
        org_id=req.organization_id,
        type=req.type,
        status=req.status,
        by=ctx.user_id,
    )
    return await load_response(req.id, session)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_requests(
    org_id: int,
    session: AsyncSession,
    request_type: Optional[RequestType] = None,
    status: Optional[RequestStatus] = None,
) -> list[OrgRequestResponse]:
    stmt = _with_people().where(OrgRequest.organization_id == org_id)
    if request_type is not None:
        stmt = stmt.where(OrgRequest.type == request_type.value)
    if status is not None:
        stmt = stmt.where(OrgRequest.status == status.value)
    return await _load_many(stmt, session)


async def my_requests(
    user_id: int,
    session: AsyncSession,
    request_type: Optional[RequestType] = None,
) -> list[OrgRequestResponse]:
    """The caller's own requests across every org, newest first."""
    stmt = _with_people().where(OrgRequest.user_id == user_id)
    if request_type is not None:
        stmt = stmt.where(OrgRequest.type == request_type.value)
    return await _load_many(stmt, session)


async def admin_notifications(
    user_id: int, session: AsyncSession
) -> AdminNotificationResponse:
    """Pending requests in every active org where the caller is Admin+."""
    admin_orgs = (
        select(UserOrganization.organization_id)
        .join(Organization, Organization.id == UserOrganization.organization_id)
        .where(
            UserOrganization.user_id == user_id,
            UserOrganization.is_active == True,  # noqa: E712
            UserOrganization.role.in_(ADMIN_ROLES),
            Organization.is_active == True,  # noqa: E712
        )
    )
    stmt = _with_people().where(
        OrgRequest.organization_id.in_(admin_orgs),
        OrgRequest.status == RequestStatus.PENDING.value,
    )
    pending = await _load_many(stmt, session)
    return AdminNotificationResponse(pending_requests=len(pending), requests=pending)
