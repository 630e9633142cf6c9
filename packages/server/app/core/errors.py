"""
Error taxonomy for business-rule violations.

Services raise these; the handler registered in ``app.main`` renders them
as ``{"error": {"code", "message", "status"}}`` with the matching status.
"""

from __future__ import annotations

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from timekeep_shared.schemas.common import ErrorBody, ErrorResponse

log = structlog.get_logger()


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400
    code = "DOMAIN_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# OpenAPI documentation of the envelope, attached to the v1 router
ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 409)
}


class AuthenticationError(DomainError):
    """Raised when the caller's identity cannot be established."""

    status_code = 401
    code = "UNAUTHENTICATED"


class NotFoundError(DomainError):
    """Org, request, period, membership or entry does not exist (for this caller)."""

    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(DomainError):
    """Insufficient role, or not the caller's own resource."""

    status_code = 403
    code = "FORBIDDEN"


class ConflictError(DomainError):
    """Duplicate pending request, duplicate membership, overlapping period."""

    status_code = 409
    code = "CONFLICT"


class InvalidStateError(DomainError):
    """The target is in a state that does not permit the action."""

    status_code = 400
    code = "INVALID_STATE"


class RuleModeViolation(InvalidStateError):
    """An organization rule mode does not permit the attempted path."""

    code = "RULE_MODE_VIOLATION"


class BusinessValidationError(DomainError):
    """Input violates a business rule (non-positive thresholds, end before start)."""

    status_code = 400
    code = "VALIDATION_ERROR"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    log.info(
        "request.rejected",
        code=exc.code,
        status=exc.status_code,
        path=request.url.path,
        reason=exc.message,
    )
    body = ErrorResponse(
        error=ErrorBody(code=exc.code, message=exc.message, status=exc.status_code)
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())
