"""
RuleMode evaluator - one policy dispatch for every organization rule dimension.

Each dimension maps to one mode column on Organization. Evaluation is pure;
the ``ensure_*`` helpers turn a decision into a RuleModeViolation with the
dimension's message so every endpoint rejects the same way.
"""

from __future__ import annotations

from enum import Enum

from app.core.errors import RuleModeViolation
from app.models.organization import Organization
from timekeep_shared.schemas.common import RequestType, RuleMode


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    REQUIRE_REQUEST = "require_request"


class RuleDimension(str, Enum):
    JOIN = "join"
    EDIT_PAST_ENTRIES = "edit_past_entries"
    EDIT_PAUSE = "edit_pause"
    INITIAL_OVERTIME = "initial_overtime"
    WORK_SCHEDULE_CHANGE = "work_schedule_change"


# dimension -> (Organization column, human label)
_DIMENSIONS: dict[RuleDimension, tuple[str, str]] = {
    RuleDimension.JOIN: ("join_policy", "Joining this organization"),
    RuleDimension.EDIT_PAST_ENTRIES: ("edit_past_entries_mode", "Editing past time entries"),
    RuleDimension.EDIT_PAUSE: ("edit_pause_mode", "Editing pause duration"),
    RuleDimension.INITIAL_OVERTIME: ("initial_overtime_mode", "Setting initial overtime"),
    RuleDimension.WORK_SCHEDULE_CHANGE: (
        "work_schedule_change_mode",
        "Changing your work schedule",
    ),
}

# request types that are admitted through the RequiresApproval branch
REQUEST_DIMENSIONS: dict[RequestType, RuleDimension] = {
    RequestType.JOIN_ORGANIZATION: RuleDimension.JOIN,
    RequestType.EDIT_PAST_ENTRY: RuleDimension.EDIT_PAST_ENTRIES,
    RequestType.EDIT_PAUSE: RuleDimension.EDIT_PAUSE,
    RequestType.SET_INITIAL_OVERTIME: RuleDimension.INITIAL_OVERTIME,
}


def evaluate(mode: RuleMode | str) -> Decision:
    """Map a configured mode to the path an action must take."""
    mode = RuleMode(mode)
    if mode == RuleMode.ALLOWED:
        return Decision.ALLOW
    if mode == RuleMode.REQUIRES_APPROVAL:
        return Decision.REQUIRE_REQUEST
    return Decision.DENY


def mode_for(org: Organization, dimension: RuleDimension) -> RuleMode:
    column, _ = _DIMENSIONS[dimension]
    return RuleMode(getattr(org, column))


def evaluate_for(org: Organization, dimension: RuleDimension) -> Decision:
    return evaluate(mode_for(org, dimension))


def ensure_direct_action_allowed(org: Organization, dimension: RuleDimension) -> None:
    """Gate a direct mutation. Only Allowed passes."""
    _, label = _DIMENSIONS[dimension]
    decision = evaluate_for(org, dimension)
    if decision == Decision.DENY:
        raise RuleModeViolation(f"{label} is disabled in this organization.")
    if decision == Decision.REQUIRE_REQUEST:
        raise RuleModeViolation(
            f"{label} requires admin approval. Please submit a request instead."
        )


def ensure_request_admissible(org: Organization, dimension: RuleDimension) -> None:
    """Gate the creation of a pending request. Only RequiresApproval passes."""
    _, label = _DIMENSIONS[dimension]
    decision = evaluate_for(org, dimension)
    if decision == Decision.DENY:
        raise RuleModeViolation(f"{label} is disabled in this organization.")
    if decision == Decision.ALLOW:
        raise RuleModeViolation(
            "You can perform this action directly without a request."
        )
