"""RFC 7807 Problem Details for report API errors.

Reference: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.core.logging import request_id_ctx

# =============================================================================
# Error Type URIs
# =============================================================================

ERROR_TYPE_BASE = "/errors"

ERROR_TYPES = {
    "NOT_FOUND": f"{ERROR_TYPE_BASE}/not-found",
    "VALIDATION_ERROR": f"{ERROR_TYPE_BASE}/validation",
    "BAD_REQUEST": f"{ERROR_TYPE_BASE}/bad-request",
    "INVALID_DATE_RANGE": f"{ERROR_TYPE_BASE}/invalid-date-range",
    "NO_REPORT_CONTEXT": f"{ERROR_TYPE_BASE}/no-report-context",
    "DOCUMENT_STORE_UNAVAILABLE": f"{ERROR_TYPE_BASE}/document-store-unavailable",
    "INTERNAL_ERROR": f"{ERROR_TYPE_BASE}/internal",
}


# =============================================================================
# Problem Detail Schema
# =============================================================================


class ProblemDetail(BaseModel):
    """RFC 7807 problem detail body.

    Attributes:
        type: URI identifying the error type.
        title: Short human-readable summary of the problem.
        status: HTTP status code.
        detail: Explanation specific to this occurrence.
        instance: URI reference for this occurrence.
        errors: Field-level validation errors (extension for 422).
        code: Machine-readable error code (extension).
        request_id: Request correlation ID (extension).
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(default="about:blank", description="URI reference identifying the problem type.")
    title: str = Field(..., description="Short, human-readable summary of the problem type.")
    status: int = Field(..., ge=400, le=599, description="HTTP status code for this occurrence.")
    detail: str | None = Field(None, description="Explanation specific to this occurrence.")
    instance: str | None = Field(None, description="URI reference for this occurrence.")
    errors: list[dict[str, Any]] | None = Field(None, description="Field-level validation errors.")
    code: str | None = Field(None, description="Machine-readable error code.")
    request_id: str | None = Field(None, description="Request correlation ID.")


class ProblemDetailResponse(JSONResponse):
    """JSON response with the RFC 7807 content type."""

    media_type = "application/problem+json"


def problem_response(
    status: int,
    title: str,
    detail: str | None = None,
    error_code: str = "INTERNAL_ERROR",
    errors: list[dict[str, Any]] | None = None,
) -> ProblemDetailResponse:
    """Create a problem+json response bound to the current request id.

    Args:
        status: HTTP status code.
        title: Short problem summary.
        detail: Detailed explanation (optional).
        error_code: Internal error code for type URI lookup.
        errors: Field-level validation errors (optional).

    Returns:
        JSONResponse with problem+json content type.
    """
    request_id = request_id_ctx.get()
    problem = ProblemDetail(
        type=ERROR_TYPES.get(error_code, f"{ERROR_TYPE_BASE}/{error_code.lower()}"),
        title=title,
        status=status,
        detail=detail,
        instance=f"/requests/{request_id}" if request_id else None,
        errors=errors,
        code=error_code,
        request_id=request_id,
    )
    return ProblemDetailResponse(
        status_code=status,
        content=problem.model_dump(exclude_none=True),
    )
