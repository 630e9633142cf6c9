"""
Request lifecycle tests: admission per rule mode, single resolution,
side effects on acceptance, and the cross-org listings.
"""

from datetime import timedelta

import pytest
from sqlmodel import select

from app.core.auth import OrgContext
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
from app.models.time_entry import TimeEntry
from app.models.user_org import UserOrganization
from app.services import requests as request_service
from app.services import time_entries as entry_service
from timekeep_shared.schemas.common import OrgRole, RequestStatus, RequestType, RuleMode
from timekeep_shared.schemas.requests import OrgRequestCreate
from timekeep_shared.schemas.time_entries import TimeEntryUpdate


async def _rows(session, model, **filters):
    stmt = select(model)
    for name, value in filters.items():
        stmt = stmt.where(getattr(model, name) == value)
    result = await session.execute(stmt)
    return list(result.scalars().all())


@pytest.fixture
async def org_with_admin(make_user, make_org, add_member):
    """An org (join requires approval) with an Admin; returns (org, admin, ctx)."""
    org = await make_org(initial_overtime_mode=RuleMode.REQUIRES_APPROVAL.value)
    admin = await make_user("Ada", "Admin")
    membership = await add_member(admin, org, role=OrgRole.ADMIN)
    return org, admin, OrgContext(user=admin, org=org, membership=membership)


class TestJoinAdmission:
    @pytest.mark.asyncio
    async def test_allowed_policy_auto_accepts(self, session, make_user, make_org):
        org = await make_org(join_policy=RuleMode.ALLOWED.value)
        user = await make_user()

        resp = await request_service.create_request(
            user, org, OrgRequestCreate(type=RequestType.JOIN_ORGANIZATION), session
        )

        assert resp.status == RequestStatus.ACCEPTED
        assert resp.responded_at is not None
        assert resp.responded_by_user_id is None
        members = await _rows(session, UserOrganization, user_id=user.id)
        assert len(members) == 1
        assert members[0].is_active is True
        assert members[0].role == OrgRole.MEMBER.value
        assert await _rows(session, OrgRequest, status=RequestStatus.PENDING.value) == []

    @pytest.mark.asyncio
    async def test_disabled_policy_rejects_without_side_effects(
        self, session, make_user, make_org
    ):
        org = await make_org(join_policy=RuleMode.DISABLED.value)
        user = await make_user()

        with pytest.raises(RuleModeViolation, match="does not accept join requests"):
            await request_service.create_request(
                user, org, OrgRequestCreate(type=RequestType.JOIN_ORGANIZATION), session
            )

        assert await _rows(session, OrgRequest) == []
        assert await _rows(session, UserOrganization) == []

    @pytest.mark.asyncio
    async def test_requires_approval_creates_pending(self, session, make_user, make_org):
        org = await make_org()
        user = await make_user()

        resp = await request_service.create_request(
            user, org, OrgRequestCreate(message="Let me in"), session
        )

        assert resp.status == RequestStatus.PENDING
        assert resp.message == "Let me in"
        assert resp.organization_slug == "acme"
        assert await _rows(session, UserOrganization) == []

    @pytest.mark.asyncio
    async def test_existing_member_cannot_join_again(
        self, session, make_user, make_org, add_member
    ):
        org = await make_org(join_policy=RuleMode.ALLOWED.value)
        user = await make_user()
        await add_member(user, org)

        with pytest.raises(ConflictError):
            await request_service.create_request(user, org, OrgRequestCreate(), session)

    @pytest.mark.asyncio
    async def test_join_reactivates_inactive_membership(
        self, session, make_user, make_org, add_member
    ):
        org = await make_org(join_policy=RuleMode.ALLOWED.value)
        user = await make_user()
        await add_member(user, org, is_active=False)

        await request_service.create_request(user, org, OrgRequestCreate(), session)

        members = await _rows(session, UserOrganization, user_id=user.id)
        assert len(members) == 1
        assert members[0].is_active is True

    @pytest.mark.asyncio
    async def test_policy_switch_resolves_stale_pending_join(
        self, session, make_user, org_with_admin
    ):
        org, admin, _ = org_with_admin
        user = await make_user()
        pending = await request_service.create_request(user, org, OrgRequestCreate(), session)
        org.join_policy = RuleMode.ALLOWED.value
        session.add(org)
        await session.commit()

        resp = await request_service.create_request(user, org, OrgRequestCreate(), session)

        assert resp.id == pending.id
        assert resp.status == RequestStatus.ACCEPTED
        assert await _rows(session, OrgRequest, status=RequestStatus.PENDING.value) == []
        notifications = await request_service.admin_notifications(admin.id, session)
        assert notifications.pending_requests == 0
        members = await _rows(session, UserOrganization, user_id=user.id)
        assert members[0].is_active is True


class TestRuleGatedRequests:
    @pytest.mark.asyncio
    async def test_non_member_cannot_request(self, session, make_user, org_with_admin):
        org, _, _ = org_with_admin
        outsider = await make_user()

        with pytest.raises(ForbiddenError):
            await request_service.create_request(
                outsider,
                org,
                OrgRequestCreate(type=RequestType.SET_INITIAL_OVERTIME, request_data="5"),
                session,
            )

    @pytest.mark.asyncio
    async def test_allowed_mode_points_to_direct_action(
        self, session, make_user, make_org, add_member
    ):
        org = await make_org(edit_pause_mode=RuleMode.ALLOWED.value)
        user = await make_user()
        await add_member(user, org)

        with pytest.raises(RuleModeViolation, match="directly"):
            await request_service.create_request(
                user, org, OrgRequestCreate(type=RequestType.EDIT_PAUSE), session
            )

    @pytest.mark.asyncio
    async def test_disabled_mode_rejected(self, session, make_user, make_org, add_member):
        org = await make_org(edit_past_entries_mode=RuleMode.DISABLED.value)
        user = await make_user()
        await add_member(user, org)

        with pytest.raises(RuleModeViolation, match="disabled"):
            await request_service.create_request(
                user, org, OrgRequestCreate(type=RequestType.EDIT_PAST_ENTRY), session
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [None, "", "abc", "nan", "12,5"])
    async def test_invalid_overtime_payload_rejected(
        self, session, make_user, add_member, org_with_admin, raw
    ):
        org, _, _ = org_with_admin
        user = await make_user()
        await add_member(user, org)

        with pytest.raises(BusinessValidationError, match="Invalid request data"):
            await request_service.create_request(
                user,
                org,
                OrgRequestCreate(type=RequestType.SET_INITIAL_OVERTIME, request_data=raw),
                session,
            )
        assert await _rows(session, OrgRequest) == []


class TestOnePending:
    @pytest.mark.asyncio
    async def test_duplicate_pending_rejected(self, session, make_user, make_org):
        org = await make_org()
        user = await make_user()
        await request_service.create_request(user, org, OrgRequestCreate(), session)

        with pytest.raises(ConflictError):
            await request_service.create_request(user, org, OrgRequestCreate(), session)

    @pytest.mark.asyncio
    async def test_new_request_allowed_after_decline(
        self, session, make_user, org_with_admin
    ):
        org, _, ctx = org_with_admin
        user = await make_user()
        first = await request_service.create_request(user, org, OrgRequestCreate(), session)
        await request_service.respond_to_request(ctx, first.id, False, session)

        second = await request_service.create_request(user, org, OrgRequestCreate(), session)
        assert second.status == RequestStatus.PENDING
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_concurrent_creates_leave_one_pending(
        self, session, session_factory, make_user, make_org, monkeypatch
    ):
        org = await make_org()
        user = await make_user()
        await request_service.create_request(user, org, OrgRequestCreate(), session)
        await session.commit()

        # the second writer missed the first one in its pre-check
        async def _never_pending(*args, **kwargs):
            return False

        monkeypatch.setattr(request_service, "_pending_exists", _never_pending)

        async with session_factory() as other:
            with pytest.raises(ConflictError):
                await request_service.create_request(user, org, OrgRequestCreate(), other)
            await other.rollback()

        pending = await _rows(session, OrgRequest, status=RequestStatus.PENDING.value)
        assert len(pending) == 1


class TestRespond:
    @pytest.mark.asyncio
    async def test_accept_join_creates_membership(
        self, session, make_user, org_with_admin
    ):
        org, admin, ctx = org_with_admin
        user = await make_user()
        created = await request_service.create_request(user, org, OrgRequestCreate(), session)

        resp = await request_service.respond_to_request(ctx, created.id, True, session)

        assert resp.status == RequestStatus.ACCEPTED
        assert resp.responded_by_user_id == admin.id
        assert resp.responded_by_name == "Ada Admin"
        members = await _rows(session, UserOrganization, user_id=user.id)
        assert members[0].is_active is True

    @pytest.mark.asyncio
    async def test_decline_join_has_no_side_effect(
        self, session, make_user, org_with_admin
    ):
        org, _, ctx = org_with_admin
        user = await make_user()
        created = await request_service.create_request(user, org, OrgRequestCreate(), session)

        resp = await request_service.respond_to_request(ctx, created.id, False, session)

        assert resp.status == RequestStatus.DECLINED
        assert await _rows(session, UserOrganization, user_id=user.id) == []

    @pytest.mark.asyncio
    async def test_initial_overtime_applied_exactly_once(
        self, session, make_user, add_member, org_with_admin
    ):
        org, _, ctx = org_with_admin
        user = await make_user()
        membership = await add_member(user, org)
        created = await request_service.create_request(
            user,
            org,
            OrgRequestCreate(type=RequestType.SET_INITIAL_OVERTIME, request_data="12.5"),
            session,
        )

        await request_service.respond_to_request(ctx, created.id, True, session)
        await session.refresh(membership)
        assert membership.initial_overtime_hours == 12.5

        membership.initial_overtime_hours = 1.0
        session.add(membership)
        await session.commit()

        with pytest.raises(InvalidStateError, match="already been responded"):
            await request_service.respond_to_request(ctx, created.id, True, session)
        await session.refresh(membership)
        assert membership.initial_overtime_hours == 1.0

    @pytest.mark.asyncio
    async def test_unparseable_legacy_payload_accepts_without_effect(
        self, session, make_user, add_member, org_with_admin
    ):
        org, _, ctx = org_with_admin
        user = await make_user()
        membership = await add_member(user, org, initial_overtime_hours=3.0)
        legacy = OrgRequest(
            user_id=user.id,
            organization_id=org.id,
            type=RequestType.SET_INITIAL_OVERTIME.value,
            status=RequestStatus.PENDING.value,
            request_data="lots",
        )
        session.add(legacy)
        await session.commit()

        resp = await request_service.respond_to_request(ctx, legacy.id, True, session)

        assert resp.status == RequestStatus.ACCEPTED
        await session.refresh(membership)
        assert membership.initial_overtime_hours == 3.0

    @pytest.mark.asyncio
    async def test_request_of_other_org_not_found(
        self, session, make_user, make_org, org_with_admin
    ):
        _, _, ctx = org_with_admin
        other_org = await make_org(slug="other")
        user = await make_user()
        created = await request_service.create_request(
            user, other_org, OrgRequestCreate(), session
        )
        with pytest.raises(NotFoundError):
            await request_service.respond_to_request(ctx, created.id, True, session)


class TestEditPastEntryApproval:
    """Approving an edit request records the decision but does not edit."""

    @pytest.mark.asyncio
    async def test_entry_unchanged_after_approval(
        self, session, make_user, make_org, add_member
    ):
        org = await make_org(edit_past_entries_mode=RuleMode.REQUIRES_APPROVAL.value)
        admin = await make_user("Ada", "Admin")
        admin_membership = await add_member(admin, org, role=OrgRole.ADMIN)
        user = await make_user()
        await add_member(user, org)

        start = utcnow() - timedelta(days=2)
        entry = TimeEntry(
            user_id=user.id,
            organization_id=org.id,
            start_time=start,
            end_time=start + timedelta(hours=5),
            is_running=False,
            pause_duration_minutes=30,
        )
        session.add(entry)
        await session.commit()

        created = await request_service.create_request(
            user,
            org,
            OrgRequestCreate(
                type=RequestType.EDIT_PAST_ENTRY,
                related_entity_id=entry.id,
                message="Forgot to stop",
            ),
            session,
        )
        ctx = OrgContext(user=admin, org=org, membership=admin_membership)
        resp = await request_service.respond_to_request(ctx, created.id, True, session)

        assert resp.status == RequestStatus.ACCEPTED
        assert resp.related_entity_id == entry.id
        await session.refresh(entry)
        assert entry.start_time == start
        assert entry.end_time == start + timedelta(hours=5)
        assert entry.pause_duration_minutes == 30

        # approval does not unlock a direct edit
        with pytest.raises(RuleModeViolation):
            await entry_service.update_entry(
                user, entry.id, TimeEntryUpdate(description="fixed"), session
            )


class TestListings:
    @pytest.mark.asyncio
    async def test_admin_notifications_cover_admin_orgs_only(
        self, session, make_user, make_org, add_member
    ):
        boss = await make_user("Bo", "Boss")
        org_a = await make_org(slug="alpha")
        org_b = await make_org(slug="beta")
        org_c = await make_org(slug="gamma")
        await add_member(boss, org_a, role=OrgRole.ADMIN)
        await add_member(boss, org_b, role=OrgRole.OWNER)
        await add_member(boss, org_c, role=OrgRole.MEMBER)

        requester = await make_user()
        for org in (org_a, org_b, org_c):
            await request_service.create_request(requester, org, OrgRequestCreate(), session)

        result = await request_service.admin_notifications(boss.id, session)

        assert result.pending_requests == 2
        assert [r.organization_slug for r in result.requests] == ["beta", "alpha"]

    @pytest.mark.asyncio
    async def test_resolved_requests_leave_notifications(
        self, session, make_user, org_with_admin
    ):
        org, admin, ctx = org_with_admin
        user = await make_user()
        created = await request_service.create_request(user, org, OrgRequestCreate(), session)
        await request_service.respond_to_request(ctx, created.id, True, session)

        result = await request_service.admin_notifications(admin.id, session)
        assert result.pending_requests == 0

    @pytest.mark.asyncio
    async def test_my_requests_span_orgs_and_filter_by_type(
        self, session, make_user, make_org, add_member
    ):
        org_a = await make_org(slug="alpha")
        org_b = await make_org(
            slug="beta", initial_overtime_mode=RuleMode.REQUIRES_APPROVAL.value
        )
        user = await make_user()
        await add_member(user, org_b)

        await request_service.create_request(user, org_a, OrgRequestCreate(), session)
        await request_service.create_request(
            user,
            org_b,
            OrgRequestCreate(type=RequestType.SET_INITIAL_OVERTIME, request_data="-4"),
            session,
        )

        mine = await request_service.my_requests(user.id, session)
        assert [r.organization_slug for r in mine] == ["beta", "alpha"]

        joins = await request_service.my_requests(
            user.id, session, request_type=RequestType.JOIN_ORGANIZATION
        )
        assert len(joins) == 1
        assert joins[0].organization_slug == "alpha"

    @pytest.mark.asyncio
    async def test_list_requests_filters_by_status(self, session, make_user, org_with_admin):
        org, _, ctx = org_with_admin
        first = await make_user()
        second = await make_user()
        accepted = await request_service.create_request(first, org, OrgRequestCreate(), session)
        await request_service.create_request(second, org, OrgRequestCreate(), session)
        await request_service.respond_to_request(ctx, accepted.id, True, session)

        pending = await request_service.list_requests(
            org.id, session, status=RequestStatus.PENDING
        )
        assert [r.user_id for r in pending] == [second.id]


class TestRequestsAPI:
    @pytest.mark.asyncio
    async def test_join_then_accept_flow(self, client, make_user, make_org, add_member, auth):
        org = await make_org()
        admin = await make_user("Ada", "Admin")
        await add_member(admin, org, role=OrgRole.ADMIN)
        user = await make_user()
        user_headers, admin_headers = auth(user), auth(admin)

        response = await client.post(
            "/api/v1/organizations/acme/requests",
            json={"type": "join_organization", "message": "hi"},
            headers=user_headers,
        )
        assert response.status_code == 201
        request_id = response.json()["id"]

        response = await client.get("/api/v1/organizations/notifications", headers=admin_headers)
        assert response.json()["pending_requests"] == 1

        response = await client.put(
            f"/api/v1/organizations/acme/requests/{request_id}",
            json={"accept": True},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"

        response = await client.get("/api/v1/organizations/acme/members", headers=user_headers)
        assert response.status_code == 200
        assert {m["user_id"] for m in response.json()["data"]} == {admin.id, user.id}

        response = await client.put(
            f"/api/v1/organizations/acme/requests/{request_id}",
            json={"accept": False},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_member_cannot_respond(self, client, make_user, make_org, add_member, auth):
        org = await make_org()
        member = await make_user()
        await add_member(member, org)

        response = await client.put(
            "/api/v1/organizations/acme/requests/1",
            json={"accept": True},
            headers=auth(member),
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_invalid_payload_returns_error_envelope(
        self, client, make_user, make_org, add_member, auth
    ):
        org = await make_org(initial_overtime_mode=RuleMode.REQUIRES_APPROVAL.value)
        member = await make_user()
        await add_member(member, org)

        response = await client.post(
            "/api/v1/organizations/acme/requests",
            json={"type": "set_initial_overtime", "request_data": "abc"},
            headers=auth(member),
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["status"] == 400

    @pytest.mark.asyncio
    async def test_disabled_join_returns_rule_violation(
        self, client, make_user, make_org, auth
    ):
        await make_org(join_policy=RuleMode.DISABLED.value)
        user = await make_user()

        response = await client.post(
            "/api/v1/organizations/acme/requests", json={}, headers=auth(user)
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "RULE_MODE_VIOLATION"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client, make_org):
        await make_org()
        response = await client.get("/api/v1/organizations/my-requests")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHENTICATED"
