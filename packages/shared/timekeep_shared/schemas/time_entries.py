"""Time tracking and pause rule schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------

class TimeEntryStart(BaseModel):
    description: Optional[str] = Field(None, max_length=500)
    organization_id: Optional[int] = None
    organization_slug: Optional[str] = None


class TimeEntryStop(BaseModel):
    description: Optional[str] = Field(None, max_length=500)


class TimeEntryUpdate(BaseModel):
    """Partial edit of a stopped entry.

    ``organization_id = 0`` detaches the entry from its organization.
    ``pause_duration_minutes`` set to a number is a manual override that
    sticks across later edits; set explicitly to ``null`` to clear it and
    return to rule-based deduction.
    """

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    description: Optional[str] = Field(None, max_length=500)
    organization_id: Optional[int] = None
    pause_duration_minutes: Optional[int] = None


class TimeEntryResponse(BaseModel):
    id: int
    user_id: int
    organization_id: Optional[int] = None
    organization_name: Optional[str] = None
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    is_running: bool
    duration_minutes: Optional[float] = None
    pause_duration_minutes: int = 0
    pause_is_manual: bool = False
    net_duration_minutes: Optional[float] = None
    created_at: datetime


class TimeEntryListResponse(BaseModel):
    data: list[TimeEntryResponse]


# ---------------------------------------------------------------------------
# Pause rules
# ---------------------------------------------------------------------------

class PauseRuleCreate(BaseModel):
    min_hours: float
    pause_minutes: int


class PauseRuleUpdate(BaseModel):
    min_hours: float
    pause_minutes: int


class PauseRuleResponse(BaseModel):
    id: int
    organization_id: int
    min_hours: float
    pause_minutes: int


class PauseRuleListResponse(BaseModel):
    data: list[PauseRuleResponse]


# ---------------------------------------------------------------------------
# Organization time overview (Admin+)
# ---------------------------------------------------------------------------

class MemberTimeOverview(BaseModel):
    user_id: int
    first_name: str
    last_name: str
    email: str
    role: str
    weekly_work_hours: Optional[float] = None
    total_tracked_minutes: float
    net_tracked_minutes: float
    entry_count: int


class TimeOverviewResponse(BaseModel):
    """Stopped entries with ``range_from <= start_time < range_to``."""

    range_from: datetime
    range_to: datetime
    data: list[MemberTimeOverview]
