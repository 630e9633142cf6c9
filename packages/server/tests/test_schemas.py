"""
Shared schema tests: request payload parsing and role ordering.
"""

import pytest
from pydantic import ValidationError

from timekeep_shared.schemas.common import OrgRole, RequestType, role_at_least
from timekeep_shared.schemas.organizations import (
    InitialOvertimeUpdate,
    OrgCreateRequest,
    OrgSettings,
)
from timekeep_shared.schemas.requests import (
    InitialOvertimeData,
    PauseEditData,
    parse_request_data,
)
from timekeep_shared.schemas.schedules import WorkScheduleUpdate


class TestParseRequestData:
    @pytest.mark.parametrize("raw, hours", [("12.5", 12.5), (" -3 ", -3.0), ("0", 0.0)])
    def test_initial_overtime_hours(self, raw, hours):
        assert parse_request_data(RequestType.SET_INITIAL_OVERTIME, raw) == InitialOvertimeData(
            hours=hours
        )

    @pytest.mark.parametrize("raw", [None, "", "  ", "12,5", "twelve", "inf", "nan"])
    def test_initial_overtime_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_request_data(RequestType.SET_INITIAL_OVERTIME, raw)

    def test_edit_pause_optional(self):
        assert parse_request_data(RequestType.EDIT_PAUSE, None) is None
        assert parse_request_data(RequestType.EDIT_PAUSE, "25") == PauseEditData(pause_minutes=25)

    @pytest.mark.parametrize("raw", ["-5", "2.5"])
    def test_edit_pause_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_request_data(RequestType.EDIT_PAUSE, raw)

    @pytest.mark.parametrize(
        "request_type", [RequestType.JOIN_ORGANIZATION, RequestType.EDIT_PAST_ENTRY]
    )
    def test_untyped_requests_carry_no_payload(self, request_type):
        assert parse_request_data(request_type, "anything") is None


class TestRoles:
    def test_ordering(self):
        assert role_at_least(OrgRole.OWNER, OrgRole.ADMIN)
        assert role_at_least("admin", OrgRole.ADMIN)
        assert not role_at_least(OrgRole.MEMBER, OrgRole.ADMIN)
        assert not role_at_least(None, OrgRole.MEMBER)


class TestOrgSchemas:
    def test_settings_defaults(self):
        settings = OrgSettings()
        assert settings.join_policy == "requires_approval"
        assert settings.edit_past_entries_mode == "allowed"
        assert settings.auto_pause_enabled is True

    @pytest.mark.parametrize("slug", ["A", "-bad", "bad-", "has space", "UPPER"])
    def test_slug_validation(self, slug):
        with pytest.raises(ValidationError):
            OrgCreateRequest(name="Org", slug=slug)

    @pytest.mark.parametrize("hours", [float("nan"), float("inf"), float("-inf")])
    def test_direct_overtime_must_be_finite(self, hours):
        with pytest.raises(ValidationError):
            InitialOvertimeUpdate(initial_overtime_hours=hours)
        with pytest.raises(ValidationError):
            WorkScheduleUpdate(initial_overtime_hours=hours)
        assert WorkScheduleUpdate().initial_overtime_hours is None
