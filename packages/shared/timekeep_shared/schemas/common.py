from enum import Enum

from pydantic import BaseModel


class RuleMode(str, Enum):
    """Tri-state policy for one dimension of organization behaviour."""

    DISABLED = "disabled"
    REQUIRES_APPROVAL = "requires_approval"
    ALLOWED = "allowed"


class OrgRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"


# Ordered list for role comparisons (lowest first)
ROLE_ORDER: list["OrgRole"] = [
    OrgRole.MEMBER,
    OrgRole.ADMIN,
    OrgRole.OWNER,
]


def role_at_least(role: "OrgRole | str | None", minimum: "OrgRole") -> bool:
    """True if ``role`` ranks at or above ``minimum``. ``None`` never does."""
    if role is None:
        return False
    return ROLE_ORDER.index(OrgRole(role)) >= ROLE_ORDER.index(minimum)


class RequestType(str, Enum):
    JOIN_ORGANIZATION = "join_organization"
    EDIT_PAST_ENTRY = "edit_past_entry"
    EDIT_PAUSE = "edit_pause"
    SET_INITIAL_OVERTIME = "set_initial_overtime"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class AbsenceType(str, Enum):
    SICK_DAY = "sick_day"
    VACATION = "vacation"
    OTHER = "other"


class ErrorBody(BaseModel):
    code: str
    message: str
    status: int


class ErrorResponse(BaseModel):
    """Envelope returned for every business-rule failure."""

    error: ErrorBody
