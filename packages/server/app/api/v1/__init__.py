"""
API v1 Router

Org-scoped endpoints are prefixed with /organizations/{orgSlug}; time
tracking lives under /timetracking and belongs to the caller.
"""

from fastapi import APIRouter

from . import calendar, pause_rules, requests, schedules, time_tracking
from .organizations import router_global as orgs_global_router
from .organizations import router_scoped as orgs_scoped_router

router = APIRouter()

# Organization routes (non-org-scoped: list, create, notifications, my-requests).
# Registered first so /organizations/notifications never matches {orgSlug}.
router.include_router(orgs_global_router)

# Organization routes (org-scoped: details, settings, members)
router.include_router(orgs_scoped_router, prefix="/organizations/{orgSlug}")

# Include resource routers
router.include_router(
    requests.router, prefix="/organizations/{orgSlug}/requests", tags=["Requests"]
)
router.include_router(
    pause_rules.router, prefix="/organizations/{orgSlug}/pause-rules", tags=["Pause Rules"]
)
router.include_router(
    schedules.router, prefix="/organizations/{orgSlug}", tags=["Work Schedules"]
)
router.include_router(calendar.router, prefix="/organizations/{orgSlug}")
router.include_router(time_tracking.router, prefix="/timetracking", tags=["Time Tracking"])


@router.get("/", tags=["API"])
async def api_root():
    """API root - returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/organizations",
            "/organizations/notifications",
            "/organizations/my-requests",
            "/organizations/{orgSlug}/members",
            "/organizations/{orgSlug}/requests",
            "/organizations/{orgSlug}/pause-rules",
            "/organizations/{orgSlug}/work-schedule",
            "/organizations/{orgSlug}/schedule-periods",
            "/organizations/{orgSlug}/holidays",
            "/organizations/{orgSlug}/absences",
            "/organizations/{orgSlug}/time-overview",
            "/timetracking",
        ],
    }
