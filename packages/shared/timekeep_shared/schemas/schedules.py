"""Work schedule schemas: membership defaults and date-ranged periods."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from .common import RuleMode


class DailyTargets(BaseModel):
    """Optional per-weekday target hours (Mon-Fri)."""

    target_mon: Optional[float] = Field(None, ge=0, le=24)
    target_tue: Optional[float] = Field(None, ge=0, le=24)
    target_wed: Optional[float] = Field(None, ge=0, le=24)
    target_thu: Optional[float] = Field(None, ge=0, le=24)
    target_fri: Optional[float] = Field(None, ge=0, le=24)


# ---------------------------------------------------------------------------
# Schedule periods
# ---------------------------------------------------------------------------

class WorkSchedulePeriodCreate(DailyTargets):
    valid_from: date
    valid_to: Optional[date] = None  # inclusive; None = open-ended
    weekly_work_hours: Optional[float] = Field(None, ge=0, le=168)
    distribute_evenly: bool = False


class WorkSchedulePeriodUpdate(DailyTargets):
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    weekly_work_hours: Optional[float] = Field(None, ge=0, le=168)
    distribute_evenly: bool = False


class WorkSchedulePeriodResponse(BaseModel):
    id: int
    user_id: int
    organization_id: int
    valid_from: date
    valid_to: Optional[date] = None
    weekly_work_hours: Optional[float] = None
    target_mon: float
    target_tue: float
    target_wed: float
    target_thu: float
    target_fri: float


class WorkSchedulePeriodListResponse(BaseModel):
    data: list[WorkSchedulePeriodResponse]


# ---------------------------------------------------------------------------
# Effective schedule (membership default or active period)
# ---------------------------------------------------------------------------

class WorkScheduleUpdate(DailyTargets):
    weekly_work_hours: Optional[float] = Field(None, ge=0, le=168)
    distribute_evenly: bool = False
    initial_overtime_hours: Optional[float] = Field(None, allow_inf_nan=False)


class WorkScheduleResponse(BaseModel):
    user_id: int
    organization_id: int
    as_of: date
    period_id: Optional[int] = None  # None = membership default applies
    weekly_work_hours: Optional[float] = None
    target_mon: float
    target_tue: float
    target_wed: float
    target_thu: float
    target_fri: float
    initial_overtime_hours: float
    initial_overtime_mode: RuleMode
    work_schedule_change_mode: RuleMode
