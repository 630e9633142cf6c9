"""
Script to create a local user owning a default organization, and print a
session token for it. Users normally come from the external auth service.

Usage:
    python -m app.scripts.create_local_owner --email alice@example.com
"""

import argparse
import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import create_jwt
from app.core.database import get_session_context, init_db
from app.core.logging import configure_logging
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrganization
from timekeep_shared.schemas.common import OrgRole

log = structlog.get_logger()


async def ensure_owner(
    session: AsyncSession,
    email: str,
    first_name: str = "Local",
    last_name: str = "Owner",
    org_slug: str = "default",
    org_name: str = "Default Organization",
) -> tuple[User, Organization]:
    """Idempotently create the user, the org and an Owner membership."""
    # 1. Ensure the organization exists
    result = await session.execute(select(Organization).where(Organization.slug == org_slug))
    org = result.scalar_one_or_none()
    if not org:
        org = Organization(name=org_name, slug=org_slug)
        session.add(org)
        log.info("seed.org_created", slug=org_slug)

    # 2. Ensure the user exists
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if not user:
        user = User(email=email, first_name=first_name, last_name=last_name)
        session.add(user)
        log.info("seed.user_created", email=email)

    await session.flush()  # Get IDs

    # 3. Ensure the Owner membership exists
    result = await session.execute(
        select(UserOrganization).where(
            UserOrganization.user_id == user.id,
            UserOrganization.organization_id == org.id,
        )
    )
    if not result.scalar_one_or_none():
        session.add(
            UserOrganization(
                user_id=user.id,
                organization_id=org.id,
                role=OrgRole.OWNER.value,
            )
        )
        await session.flush()
        log.info("seed.owner_added", email=email, slug=org_slug)

    return user, org


async def main(email: str, org_slug: str) -> None:
    configure_logging(fmt="text")
    await init_db()
    async with get_session_context() as session:
        user, org = await ensure_owner(session, email, org_slug=org_slug)
    print(f"Bearer token for {email} (owner of '{org.slug}'):")
    print(create_jwt(user.id))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local org owner.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--org", default="default", help="Slug of the organization")

    args = parser.parse_args()

    asyncio.run(main(args.email, args.org))
