"""
Organization tests: lifecycle, settings, role rules for membership
administration, and initial overtime.
"""

import pytest

from app.core.auth import OrgContext
from app.core.errors import ConflictError, ForbiddenError, InvalidStateError, RuleModeViolation
from app.services import organizations as org_service
from timekeep_shared.schemas.common import OrgRole, RuleMode
from timekeep_shared.schemas.organizations import MemberAddRequest


@pytest.fixture
async def roster(make_user, make_org, add_member):
    """Org with an Owner, an Admin and two Members."""
    org = await make_org()
    people = {}
    contexts = {}
    for key, role in [
        ("owner", OrgRole.OWNER),
        ("admin", OrgRole.ADMIN),
        ("member", OrgRole.MEMBER),
        ("other", OrgRole.MEMBER),
    ]:
        user = await make_user(key.title())
        membership = await add_member(user, org, role=role)
        people[key] = user
        contexts[key] = OrgContext(user=user, org=org, membership=membership)
    return org, people, contexts


class TestRoleChanges:
    @pytest.mark.asyncio
    async def test_owner_promotes_member_to_admin(self, session, roster):
        _, people, ctx = roster
        resp = await org_service.update_member_role(
            ctx["owner"], people["member"].id, OrgRole.ADMIN, session
        )
        assert resp.role == OrgRole.ADMIN

    @pytest.mark.asyncio
    async def test_owner_role_cannot_change(self, session, roster):
        _, people, ctx = roster
        with pytest.raises(InvalidStateError):
            await org_service.update_member_role(
                ctx["owner"], people["owner"].id, OrgRole.MEMBER, session
            )

    @pytest.mark.asyncio
    async def test_owner_role_cannot_be_granted(self, session, roster):
        _, people, ctx = roster
        with pytest.raises(InvalidStateError):
            await org_service.update_member_role(
                ctx["owner"], people["admin"].id, OrgRole.OWNER, session
            )

    @pytest.mark.asyncio
    async def test_admin_cannot_change_admin(self, session, roster, make_user, add_member):
        org, _, ctx = roster
        second_admin = await make_user("Second")
        await add_member(second_admin, org, role=OrgRole.ADMIN)
        with pytest.raises(ForbiddenError):
            await org_service.update_member_role(
                ctx["admin"], second_admin.id, OrgRole.MEMBER, session
            )


class TestRemoval:
    @pytest.mark.asyncio
    async def test_owner_cannot_leave(self, session, roster):
        _, people, ctx = roster
        with pytest.raises(InvalidStateError):
            await org_service.remove_member(ctx["owner"], people["owner"].id, session)

    @pytest.mark.asyncio
    async def test_member_can_leave(self, session, roster):
        org, people, ctx = roster
        await org_service.remove_member(ctx["member"], people["member"].id, session)
        assert await org_service.count_members(org.id, session) == 3

    @pytest.mark.asyncio
    async def test_member_cannot_remove_others(self, session, roster):
        _, people, ctx = roster
        with pytest.raises(ForbiddenError):
            await org_service.remove_member(ctx["member"], people["other"].id, session)

    @pytest.mark.asyncio
    async def test_admin_removes_members_only(self, session, roster):
        _, people, ctx = roster
        await org_service.remove_member(ctx["admin"], people["member"].id, session)
        with pytest.raises(ForbiddenError):
            await org_service.remove_member(ctx["admin"], people["owner"].id, session)

    @pytest.mark.asyncio
    async def test_owner_removes_admin(self, session, roster):
        org, people, ctx = roster
        await org_service.remove_member(ctx["owner"], people["admin"].id, session)
        members = await org_service.list_members(org.id, session)
        assert people["admin"].id not in {m.user_id for m in members}


class TestAddMember:
    @pytest.mark.asyncio
    async def test_admin_cannot_add_owner(self, session, roster, make_user):
        _, _, ctx = roster
        newcomer = await make_user("New")
        with pytest.raises(ForbiddenError):
            await org_service.add_member(
                ctx["admin"], MemberAddRequest(user_id=newcomer.id, role=OrgRole.OWNER), session
            )

    @pytest.mark.asyncio
    async def test_duplicate_membership_conflicts(self, session, roster):
        _, people, ctx = roster
        with pytest.raises(ConflictError):
            await org_service.add_member(
                ctx["admin"], MemberAddRequest(user_id=people["member"].id), session
            )

    @pytest.mark.asyncio
    async def test_removed_member_can_be_re_added(self, session, roster):
        org, people, ctx = roster
        await org_service.remove_member(ctx["admin"], people["member"].id, session)
        resp = await org_service.add_member(
            ctx["admin"], MemberAddRequest(user_id=people["member"].id), session
        )
        assert resp.role == OrgRole.MEMBER
        assert await org_service.count_members(org.id, session) == 4


class TestInitialOvertime:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", [RuleMode.DISABLED, RuleMode.REQUIRES_APPROVAL])
    async def test_self_service_gated(self, session, make_user, make_org, add_member, mode):
        org = await make_org(initial_overtime_mode=mode.value)
        user = await make_user()
        membership = await add_member(user, org)
        ctx = OrgContext(user=user, org=org, membership=membership)

        with pytest.raises(RuleModeViolation):
            await org_service.set_my_initial_overtime(ctx, 10, session)

    @pytest.mark.asyncio
    async def test_self_service_allowed(self, session, make_user, make_org, add_member):
        org = await make_org(initial_overtime_mode=RuleMode.ALLOWED.value)
        user = await make_user()
        membership = await add_member(user, org)
        ctx = OrgContext(user=user, org=org, membership=membership)

        result = await org_service.set_my_initial_overtime(ctx, -2.5, session)
        assert result.initial_overtime_hours == -2.5


class TestOrganizationsAPI:
    @pytest.mark.asyncio
    async def test_create_makes_creator_owner(self, client, make_user, auth):
        user = await make_user()
        headers = auth(user)

        response = await client.post(
            "/api/v1/organizations",
            json={"name": "Widget Works", "slug": "widget-works"},
            headers=headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["member_count"] == 1
        assert body["settings"]["join_policy"] == "requires_approval"
        assert body["settings"]["auto_pause_enabled"] is True

        response = await client.get(
            "/api/v1/organizations/widget-works/members", headers=headers
        )
        assert response.json()["data"][0]["role"] == "owner"

        response = await client.post(
            "/api/v1/organizations",
            json={"name": "Copy", "slug": "widget-works"},
            headers=headers,
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_list_counts_active_members(self, client, make_user, make_org, add_member, auth):
        org = await make_org()
        first, second = await make_user(), await make_user()
        await add_member(first, org, role=OrgRole.OWNER)
        await add_member(second, org, is_active=False)
        await make_org(slug="closed", is_active=False)

        response = await client.get("/api/v1/organizations", headers=auth(first))
        data = response.json()["data"]
        assert [(o["slug"], o["member_count"]) for o in data] == [("acme", 1)]

    @pytest.mark.asyncio
    async def test_settings_partial_update(self, client, make_user, make_org, add_member, auth):
        org = await make_org()
        admin = await make_user()
        await add_member(admin, org, role=OrgRole.ADMIN)

        response = await client.put(
            "/api/v1/organizations/acme/settings",
            json={"edit_pause_mode": "disabled", "auto_pause_enabled": False},
            headers=auth(admin),
        )
        assert response.status_code == 200
        settings = response.json()["settings"]
        assert settings["edit_pause_mode"] == "disabled"
        assert settings["auto_pause_enabled"] is False
        assert settings["edit_past_entries_mode"] == "allowed"
        assert settings["join_policy"] == "requires_approval"

    @pytest.mark.asyncio
    async def test_member_cannot_change_settings(
        self, client, make_user, make_org, add_member, auth
    ):
        org = await make_org()
        member = await make_user()
        await add_member(member, org)

        response = await client.put(
            "/api/v1/organizations/acme/settings",
            json={"join_policy": "allowed"},
            headers=auth(member),
        )
        assert response.status_code == 403
        assert response.json() == {
            "error": {
                "code": "FORBIDDEN",
                "message": "Administrator access required",
                "status": 403,
            }
        }

    @pytest.mark.asyncio
    async def test_update_profile(self, client, make_user, make_org, add_member, auth):
        org = await make_org()
        admin = await make_user()
        await add_member(admin, org, role=OrgRole.ADMIN)

        response = await client.put(
            "/api/v1/organizations/acme",
            json={"description": "We build things"},
            headers=auth(admin),
        )
        assert response.status_code == 200
        assert response.json()["description"] == "We build things"
        assert response.json()["name"] == "Acme"

    @pytest.mark.asyncio
    async def test_only_owner_deletes(self, client, make_user, make_org, add_member, auth):
        org = await make_org()
        owner, admin = await make_user(), await make_user()
        await add_member(owner, org, role=OrgRole.OWNER)
        await add_member(admin, org, role=OrgRole.ADMIN)
        owner_headers = auth(owner)

        response = await client.delete("/api/v1/organizations/acme", headers=auth(admin))
        assert response.status_code == 403

        response = await client.delete("/api/v1/organizations/acme", headers=owner_headers)
        assert response.status_code == 204

        response = await client.get("/api/v1/organizations/acme", headers=owner_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_admin_sets_member_initial_overtime(
        self, client, make_user, make_org, add_member, auth
    ):
        org = await make_org(initial_overtime_mode=RuleMode.DISABLED.value)
        admin, member = await make_user(), await make_user()
        await add_member(admin, org, role=OrgRole.ADMIN)
        await add_member(member, org)

        response = await client.put(
            f"/api/v1/organizations/acme/members/{member.id}/initial-overtime",
            json={"initial_overtime_hours": 12.5},
            headers=auth(admin),
        )
        assert response.status_code == 200
        assert response.json() == {"user_id": member.id, "initial_overtime_hours": 12.5}

        response = await client.put(
            "/api/v1/organizations/acme/initial-overtime",
            json={"initial_overtime_hours": 99},
            headers=auth(member),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "RULE_MODE_VIOLATION"

    @pytest.mark.asyncio
    async def test_unknown_org_not_found(self, client, make_user, auth):
        user = await make_user()
        response = await client.get("/api/v1/organizations/missing", headers=auth(user))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"
