"""
Organization request (OrgRequest) schemas.

The wire format keeps ``request_data`` as a plain string. The typed payload
models below are what the server actually acts on; ``parse_request_data``
turns the string into the payload for its request type.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from .common import RequestStatus, RequestType


# ---------------------------------------------------------------------------
# Typed payloads
# ---------------------------------------------------------------------------

class InitialOvertimeData(BaseModel):
    """Payload of a SetInitialOvertime request."""

    hours: float


class PauseEditData(BaseModel):
    """Payload of an EditPause request (the pause the member asks for)."""

    pause_minutes: int = Field(ge=0)


RequestPayload = Union[InitialOvertimeData, PauseEditData]


def parse_request_data(
    request_type: RequestType, raw: Optional[str]
) -> Optional[RequestPayload]:
    """Parse the raw request string into the typed payload for ``request_type``.

    Numbers are read culture-invariantly ("12.5", never "12,5").
    Returns None for types that carry no structured payload, or when an
    optional payload is absent. Raises ValueError if the payload is missing
    where required or cannot be parsed.
    """
    text = raw.strip() if raw is not None else ""

    if request_type == RequestType.SET_INITIAL_OVERTIME:
        if not text:
            raise ValueError("Initial overtime requests need the requested hours")
        hours = float(text)
        if not math.isfinite(hours):
            raise ValueError("Initial overtime hours must be a finite number")
        return InitialOvertimeData(hours=hours)

    if request_type == RequestType.EDIT_PAUSE:
        if not text:
            return None
        minutes = int(text)
        if minutes < 0:
            raise ValueError("Pause minutes cannot be negative")
        return PauseEditData(pause_minutes=minutes)

    return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgRequestCreate(BaseModel):
    type: RequestType = RequestType.JOIN_ORGANIZATION
    message: Optional[str] = Field(None, max_length=1000)
    related_entity_id: Optional[int] = None
    request_data: Optional[str] = Field(None, max_length=500)


class OrgRequestRespond(BaseModel):
    accept: bool


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgRequestResponse(BaseModel):
    id: int
    user_id: int
    user_first_name: str
    user_last_name: str
    user_email: str
    organization_id: int
    organization_name: str
    organization_slug: str
    type: RequestType
    status: RequestStatus
    message: Optional[str] = None
    related_entity_id: Optional[int] = None
    request_data: Optional[str] = None
    created_at: datetime
    responded_at: Optional[datetime] = None
    responded_by_user_id: Optional[int] = None
    responded_by_name: Optional[str] = None


class OrgRequestListResponse(BaseModel):
    data: list[OrgRequestResponse]


class AdminNotificationResponse(BaseModel):
    """Pending requests across every org where the caller is Admin+."""

    pending_requests: int
    requests: list[OrgRequestResponse]
