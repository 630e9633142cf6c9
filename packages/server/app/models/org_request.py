"""Generic organization request (join, edit past entry, edit pause, initial overtime)."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from timekeep_shared.schemas.common import RequestStatus

from .base import IntIdMixin, UTCDateTime, utcnow

_PENDING = sa.text("status = 'pending'")


class OrgRequest(IntIdMixin, SQLModel, table=True):
    __tablename__ = "org_requests"
    __table_args__ = (
        # At most one pending request per (user, org, type)
        sa.Index(
            "uq_org_requests_one_pending",
            "user_id",
            "organization_id",
            "type",
            unique=True,
            postgresql_where=_PENDING,
            sqlite_where=_PENDING,
        ),
    )

    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    organization_id: int = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
    type: str = Field(nullable=False)  # join_organization | edit_past_entry | edit_pause | set_initial_overtime
    status: str = Field(default=RequestStatus.PENDING.value, nullable=False, index=True)
    message: Optional[str] = Field(default=None, max_length=1000)
    related_entity_id: Optional[int] = None
    request_data: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)
    responded_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    responded_by_user_id: Optional[int] = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL"
    )
