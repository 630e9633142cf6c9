"""Per-organization pause deduction threshold."""

from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import IntIdMixin, UTCDateTime, utcnow


class PauseRule(IntIdMixin, SQLModel, table=True):
    __tablename__ = "pause_rules"
    __table_args__ = (
        UniqueConstraint("organization_id", "min_hours", name="uq_pause_rules_org_threshold"),
    )

    organization_id: int = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
    min_hours: float = Field(nullable=False)
    pause_minutes: int = Field(nullable=False)
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)
