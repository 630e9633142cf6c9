"""
Identity and org-scoped authorization for Timekeep.

Tokens are issued by the external auth service; this module only verifies
them. Supports:
- Bearer JWT in the Authorization header (API clients)
- JWT in the ``tt_session`` cookie (browser SPA)
- Role-based authorization dependencies scoped to ``{orgSlug}``
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AuthenticationError, ForbiddenError, NotFoundError
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrganization
from timekeep_shared.schemas.common import OrgRole, role_at_least

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "tt_session"

auth_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(user_id: int, *, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT for a user id (tooling and tests)."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {"sub": str(user_id), "iat": now, "exp": exp}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return request.cookies.get(SESSION_COOKIE)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

async def get_current_user(
    request: Request,
    authorization: Optional[str] = Depends(auth_header),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the caller from a Bearer header or the session cookie."""
    token = _extract_token(request, authorization)
    if not token:
        raise AuthenticationError("Authentication required")

    try:
        payload = decode_jwt(token)
        user_id = int(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise AuthenticationError("Invalid or expired session")

    user = await session.get(User, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("User not found")

    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user


class OrgContext:
    """Container for the caller, the org in the path, and the caller's membership."""

    def __init__(
        self,
        user: User,
        org: Organization,
        membership: Optional[UserOrganization],
    ):
        self.user = user
        self.org = org
        self.membership = membership
        self.user_id = user.id
        self.org_id = org.id
        self.role = membership.role if membership else None


async def get_active_org(org_slug: str, session: AsyncSession) -> Organization:
    """Resolve an active org by slug, raise NotFound otherwise."""
    result = await session.execute(
        select(Organization).where(
            Organization.slug == org_slug,
            Organization.is_active == True,  # noqa: E712
        )
    )
    org = result.scalar_one_or_none()
    if not org:
        raise NotFoundError("Organization not found")
    return org


async def get_active_membership(
    user_id: int, org_id: int, session: AsyncSession, *, for_update: bool = False
) -> Optional[UserOrganization]:
    """Membership lookup; inactive rows are treated as absent."""
    stmt = select(UserOrganization).where(
        UserOrganization.user_id == user_id,
        UserOrganization.organization_id == org_id,
        UserOrganization.is_active == True,  # noqa: E712
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_org_context(
    orgSlug: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> OrgContext:
    """Org in the path plus the caller's (possibly absent) membership."""
    org = await get_active_org(orgSlug, session)
    membership = await get_active_membership(user.id, org.id, session)
    structlog.contextvars.bind_contextvars(org_id=org.id)
    return OrgContext(user=user, org=org, membership=membership)


# ---------------------------------------------------------------------------
# Authorization dependencies (role checks)
# ---------------------------------------------------------------------------

async def require_member(ctx: OrgContext = Depends(get_org_context)) -> OrgContext:
    """Any active member of the org."""
    if ctx.membership is None:
        raise ForbiddenError("You are not a member of this organization")
    return ctx


async def require_admin(ctx: OrgContext = Depends(get_org_context)) -> OrgContext:
    """Requires Admin or Owner role."""
    if not role_at_least(ctx.role, OrgRole.ADMIN):
        raise ForbiddenError("Administrator access required")
    return ctx


async def require_owner(ctx: OrgContext = Depends(get_org_context)) -> OrgContext:
    """Requires the Owner role."""
    if not role_at_least(ctx.role, OrgRole.OWNER):
        raise ForbiddenError("Owner access required")
    return ctx
