"""Organization holiday (a non-working date for every member)."""

import datetime as dt

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import IntIdMixin, UTCDateTime, utcnow


class Holiday(IntIdMixin, SQLModel, table=True):
    __tablename__ = "holidays"
    __table_args__ = (
        UniqueConstraint("organization_id", "date", name="uq_holidays_org_date"),
    )

    organization_id: int = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
    date: dt.date = Field(nullable=False)
    name: str = Field(nullable=False, max_length=200)
    is_recurring: bool = Field(default=False, nullable=False)  # same month/day every year
    created_at: dt.datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)
