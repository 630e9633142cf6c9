"""Organization model (tenant root, soft-deleted via is_active)."""

from typing import Optional

from sqlmodel import Field, SQLModel

from timekeep_shared.schemas.common import RuleMode

from .base import IntIdMixin, TimestampMixin


class Organization(IntIdMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, max_length=100)
    slug: str = Field(unique=True, nullable=False, index=True, max_length=50)
    description: Optional[str] = Field(default=None, max_length=1000)
    website: Optional[str] = Field(default=None, max_length=255)
    logo_url: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = Field(default=True, nullable=False)

    # Rules
    auto_pause_enabled: bool = Field(default=True, nullable=False)
    edit_past_entries_mode: str = Field(default=RuleMode.ALLOWED.value, nullable=False)
    edit_pause_mode: str = Field(default=RuleMode.ALLOWED.value, nullable=False)
    initial_overtime_mode: str = Field(default=RuleMode.ALLOWED.value, nullable=False)
    join_policy: str = Field(default=RuleMode.REQUIRES_APPROVAL.value, nullable=False)
    work_schedule_change_mode: str = Field(default=RuleMode.ALLOWED.value, nullable=False)
