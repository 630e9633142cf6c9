"""Tracked work session."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IntIdMixin, TimestampMixin, UTCDateTime


class TimeEntry(IntIdMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "time_entries"
    __table_args__ = (
        # At most one running entry per user
        sa.Index(
            "uq_time_entries_one_running",
            "user_id",
            unique=True,
            postgresql_where=sa.text("is_running"),
            sqlite_where=sa.text("is_running = 1"),
        ),
    )

    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    organization_id: Optional[int] = Field(
        default=None, foreign_key="organizations.id", ondelete="SET NULL", index=True
    )
    description: Optional[str] = Field(default=None, max_length=500)
    start_time: datetime = Field(nullable=False, sa_type=UTCDateTime)
    end_time: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    is_running: bool = Field(default=False, nullable=False)
    pause_duration_minutes: int = Field(default=0, nullable=False)
    pause_is_manual: bool = Field(default=False, nullable=False)  # manual override sticks until cleared
