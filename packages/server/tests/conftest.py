"""
Shared fixtures: a file-backed SQLite database per test, factories for
users/orgs/memberships, and an ASGI client whose requests each get their
own session (commit on success, rollback on error) like production.
"""

from __future__ import annotations

import itertools
import os

os.environ.setdefault("TT_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TT_LOG_FORMAT", "text")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import create_jwt
from app.core.database import build_engine, get_session, init_db
from app.main import app as fastapi_app
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrganization
from timekeep_shared.schemas.common import OrgRole


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'timekeep.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories (each commits so API requests in other sessions see the rows)
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(session):
    counter = itertools.count(1)

    async def _make(first_name: str = "Test", last_name: str = "User") -> User:
        n = next(counter)
        user = User(
            email=f"{first_name.lower()}{n}@example.com",
            first_name=first_name,
            last_name=last_name,
        )
        session.add(user)
        await session.commit()
        return user

    return _make


@pytest.fixture
def make_org(session):
    async def _make(slug: str = "acme", **rules) -> Organization:
        org = Organization(name=slug.replace("-", " ").title(), slug=slug, **rules)
        session.add(org)
        await session.commit()
        return org

    return _make


@pytest.fixture
def add_member(session):
    async def _add(
        user: User, org: Organization, role: OrgRole = OrgRole.MEMBER, **fields
    ) -> UserOrganization:
        membership = UserOrganization(
            user_id=user.id, organization_id=org.id, role=role.value, **fields
        )
        session.add(membership)
        await session.commit()
        return membership

    return _add


@pytest.fixture
def auth():
    """Build Bearer headers for a user."""

    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_jwt(user.id)}"}

    return _headers
