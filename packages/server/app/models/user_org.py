"""User-Organization membership (join table)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from timekeep_shared.schemas.common import OrgRole

from .base import IntIdMixin, UTCDateTime, utcnow


class UserOrganization(IntIdMixin, SQLModel, table=True):
    __tablename__ = "user_organizations"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_user_organizations_user_org"),
    )

    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    organization_id: int = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
    role: str = Field(default=OrgRole.MEMBER.value, nullable=False)  # member | admin | owner
    is_active: bool = Field(default=True, nullable=False)
    joined_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)

    # Default schedule, used when no WorkSchedulePeriod covers a date
    weekly_work_hours: Optional[float] = None
    target_mon: float = Field(default=0.0, nullable=False)
    target_tue: float = Field(default=0.0, nullable=False)
    target_wed: float = Field(default=0.0, nullable=False)
    target_thu: float = Field(default=0.0, nullable=False)
    target_fri: float = Field(default=0.0, nullable=False)

    initial_overtime_hours: float = Field(default=0.0, nullable=False)
