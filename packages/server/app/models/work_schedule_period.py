"""Date-ranged override of a member's weekly/daily target hours.

valid_from and valid_to are both inclusive; valid_to None means open-ended.
"""

from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IntIdMixin, UTCDateTime, utcnow

_OPEN_ENDED = sa.text("valid_to IS NULL")


class WorkSchedulePeriod(IntIdMixin, SQLModel, table=True):
    __tablename__ = "work_schedule_periods"
    __table_args__ = (
        # At most one open-ended period per member
        sa.Index(
            "uq_work_schedule_periods_one_open",
            "user_id",
            "organization_id",
            unique=True,
            postgresql_where=_OPEN_ENDED,
            sqlite_where=_OPEN_ENDED,
        ),
    )

    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    organization_id: int = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
    valid_from: date = Field(nullable=False)
    valid_to: Optional[date] = None

    weekly_work_hours: Optional[float] = None
    target_mon: float = Field(default=0.0, nullable=False)
    target_tue: float = Field(default=0.0, nullable=False)
    target_wed: float = Field(default=0.0, nullable=False)
    target_thu: float = Field(default=0.0, nullable=False)
    target_fri: float = Field(default=0.0, nullable=False)

    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)
