"""
Calendar schemas: organization holidays and members' absence days.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from .common import AbsenceType


# ---------------------------------------------------------------------------
# Holidays
# ---------------------------------------------------------------------------

class HolidayCreate(BaseModel):
    date: dt.date
    name: str = Field(..., min_length=1, max_length=200)
    is_recurring: bool = False


class HolidayUpdate(BaseModel):
    date: Optional[dt.date] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_recurring: Optional[bool] = None


class HolidayResponse(BaseModel):
    id: int
    organization_id: int
    date: dt.date
    name: str
    is_recurring: bool


class HolidayListResponse(BaseModel):
    data: list[HolidayResponse]


# ---------------------------------------------------------------------------
# Absences
# ---------------------------------------------------------------------------

class AbsenceCreate(BaseModel):
    date: dt.date
    type: AbsenceType = AbsenceType.SICK_DAY
    note: Optional[str] = Field(None, max_length=500)


class AdminAbsenceCreate(AbsenceCreate):
    """Absence recorded by an Admin+ on behalf of a member."""

    user_id: int


class AbsenceResponse(BaseModel):
    id: int
    user_id: int
    organization_id: int
    date: dt.date
    type: AbsenceType
    note: Optional[str] = None
    user_first_name: Optional[str] = None
    user_last_name: Optional[str] = None


class AbsenceListResponse(BaseModel):
    data: list[AbsenceResponse]
