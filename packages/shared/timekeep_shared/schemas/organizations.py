"""
Organization-related Pydantic schemas shared between server and API clients.

Covers: Org CRUD request/response, the rule-mode settings block,
membership administration and initial overtime.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import OrgRole, RuleMode


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class OrgSettings(BaseModel):
    """The per-organization rule block. Defaults match a freshly created org."""

    auto_pause_enabled: bool = True
    edit_past_entries_mode: RuleMode = RuleMode.ALLOWED
    edit_pause_mode: RuleMode = RuleMode.ALLOWED
    initial_overtime_mode: RuleMode = RuleMode.ALLOWED
    join_policy: RuleMode = RuleMode.REQUIRES_APPROVAL
    work_schedule_change_mode: RuleMode = RuleMode.ALLOWED

    model_config = {"from_attributes": True}


class OrgSettingsUpdate(BaseModel):
    """Partial settings update; omitted fields keep their current value."""

    auto_pause_enabled: Optional[bool] = None
    edit_past_entries_mode: Optional[RuleMode] = None
    edit_pause_mode: Optional[RuleMode] = None
    initial_overtime_mode: Optional[RuleMode] = None
    join_policy: Optional[RuleMode] = None
    work_schedule_change_mode: Optional[RuleMode] = None


# ---------------------------------------------------------------------------
# Org CRUD
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    slug: str = Field(
        ...,
        min_length=2,
        max_length=50,
        pattern=r"^[a-z0-9][a-z0-9-]*[a-z0-9]$",
        description="URL-safe org identifier",
    )
    description: Optional[str] = Field(None, max_length=1000)
    website: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=500)


class OrgResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    member_count: int = 0
    settings: OrgSettings
    created_at: datetime


class OrgListResponse(BaseModel):
    data: list[OrgResponse]


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

class MemberAddRequest(BaseModel):
    user_id: int
    role: OrgRole = OrgRole.MEMBER


class MemberRoleUpdate(BaseModel):
    role: OrgRole


class MemberResponse(BaseModel):
    user_id: int
    email: str
    first_name: str
    last_name: str
    role: OrgRole
    joined_at: datetime
    initial_overtime_hours: float = 0.0


class MemberListResponse(BaseModel):
    data: list[MemberResponse]


class InitialOvertimeUpdate(BaseModel):
    initial_overtime_hours: float = Field(allow_inf_nan=False)


class InitialOvertimeResponse(BaseModel):
    user_id: int
    initial_overtime_hours: float


class OrgUpdateRequest(BaseModel):
    """Partial update of the org profile; the slug is immutable."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    website: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=500)
