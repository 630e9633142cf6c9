"""
Organization request endpoints (org-scoped).

POST /api/v1/organizations/{orgSlug}/requests              - Create a request
GET  /api/v1/organizations/{orgSlug}/requests              - List requests (Admin+)
PUT  /api/v1/organizations/{orgSlug}/requests/{requestId}  - Accept or decline (Admin+)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import OrgContext, get_org_context, require_admin
from app.core.database import get_session
from app.services import requests as request_service
from timekeep_shared.schemas.common import RequestStatus, RequestType
from timekeep_shared.schemas.requests import (
    OrgRequestCreate,
    OrgRequestListResponse,
    OrgRequestRespond,
    OrgRequestResponse,
)

router = APIRouter()


@router.post("", response_model=OrgRequestResponse, status_code=201)
async def create_request(
    body: OrgRequestCreate,
    ctx: OrgContext = Depends(get_org_context),
    session: AsyncSession = Depends(get_session),
):
    """Create a request. Join requests do not require membership."""
    return await request_service.create_request(ctx.user, ctx.org, body, session)


@router.get("", response_model=OrgRequestListResponse)
async def list_requests(
    type: Optional[RequestType] = None,
    status: Optional[RequestStatus] = None,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    items = await request_service.list_requests(
        ctx.org_id, session, request_type=type, status=status
    )
    return OrgRequestListResponse(data=items)


@router.put("/{requestId}", response_model=OrgRequestResponse)
async def respond_to_request(
    requestId: int,
    body: OrgRequestRespond,
    ctx: OrgContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Resolve a pending request exactly once."""
    return await request_service.respond_to_request(ctx, requestId, body.accept, session)
