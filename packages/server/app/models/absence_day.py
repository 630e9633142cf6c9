"""A member's day of absence (sick day, vacation, other)."""

import datetime as dt
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from timekeep_shared.schemas.common import AbsenceType

from .base import IntIdMixin, UTCDateTime, utcnow


class AbsenceDay(IntIdMixin, SQLModel, table=True):
    __tablename__ = "absence_days"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", "date", name="uq_absence_days_member_date"),
    )

    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    organization_id: int = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
    date: dt.date = Field(nullable=False)
    type: str = Field(default=AbsenceType.SICK_DAY.value, nullable=False)  # sick_day | vacation | other
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: dt.datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)
