"""
Pause rule endpoints (org-scoped).

GET    /api/v1/organizations/{orgSlug}/pause-rules           - List rules by threshold
POST   /api/v1/organizations/{orgSlug}/pause-rules           - Create rule (Admin+)
PUT    /api/v1/organizations/{orgSlug}/pause-rules/{ruleId}  - Update rule (Admin+)
DELETE /api/v1/organizations/{orgSlug}/pause-rules/{ruleId}  - Delete rule (Admin+)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import OrgContext, require_admin, require_member
from app.core.database import get_session
from app.models.pause_rule import PauseRule
from app.services import pause_rules as pause_rule_service
from timekeep_shared.schemas.time_entries import (
    PauseRuleCreate,
    PauseRuleListResponse,
    PauseRuleResponse,
    PauseRuleUpdate,
)

router = APIRouter()


def _to_response(rule: PauseRule) -> PauseRuleResponse:
    return PauseRuleResponse(
        id=rule.id,
        organization_id=rule.organization_id,
        min_hours=rule.min_hours,
        pause_minutes=rule.pause_minutes,
    )


@router.get("", response_model=PauseRuleListResponse)
async def list_rules(
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    rules = await pause_rule_service.list_rules(ctx.org_id, session)
    return PauseRuleListResponse(data=[_to_response(r) for r in rules])


@router.post("", response_model=PauseRuleResponse, status_code=201)
async def create_rule(
    body: PauseRuleCreate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    rule = await pause_rule_service.create_rule(
        ctx.org_id, body.min_hours, body.pause_minutes, session
    )
    return _to_response(rule)


@router.put("/{ruleId}", response_model=PauseRuleResponse)
async def update_rule(
    ruleId: int,
    body: PauseRuleUpdate,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    rule = await pause_rule_service.update_rule(
        ctx.org_id, ruleId, body.min_hours, body.pause_minutes, session
    )
    return _to_response(rule)


@router.delete("/{ruleId}", status_code=204)
async def delete_rule(
    ruleId: int,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await pause_rule_service.delete_rule(ctx.org_id, ruleId, session)
    return Response(status_code=204)
