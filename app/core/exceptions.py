"""Custom exceptions and FastAPI exception handlers.

Errors are rendered as RFC 7807 Problem Details. Fetch faults inside report
generation never reach these handlers: the fetchers degrade to empty
collections and surface a notice instead.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from app.core.logging import get_logger
from app.core.problem_details import (
    ERROR_TYPES,
    ProblemDetailResponse,
    problem_response,
)

logger = get_logger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================


class AmacusiReportsError(Exception):
    """Base exception for reporting service errors.

    Each subclass maps to an RFC 7807 problem type URI.
    """

    error_type_uri: str = ERROR_TYPES["INTERNAL_ERROR"]

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application error.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status code.
            details: Additional error context.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    @property
    def title(self) -> str:
        """RFC 7807 title - short summary of problem type."""
        return self.code.replace("_", " ").title()


class NotFoundError(AmacusiReportsError):
    """A drilldown target (day, category, product, customer...) does not exist."""

    error_type_uri: str = ERROR_TYPES["NOT_FOUND"]

    def __init__(
        self,
        message: str = "Resource not found",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="NOT_FOUND", status_code=404, details=details)


class ValidationError(AmacusiReportsError):
    """Input validation error."""

    error_type_uri: str = ERROR_TYPES["VALIDATION_ERROR"]

    def __init__(
        self,
        message: str = "Validation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="VALIDATION_ERROR", status_code=422, details=details
        )


class BadRequestError(AmacusiReportsError):
    """Malformed or unsupported request parameters."""

    error_type_uri: str = ERROR_TYPES["BAD_REQUEST"]

    def __init__(
        self,
        message: str = "Bad request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="BAD_REQUEST", status_code=400, details=details)


class InvalidDateRangeError(AmacusiReportsError):
    """Start date after end date, or a range wider than allowed.

    Raised before any fetch so no partial computation happens.
    """

    error_type_uri: str = ERROR_TYPES["INVALID_DATE_RANGE"]

    def __init__(
        self,
        message: str = "Start date cannot be after end date",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="INVALID_DATE_RANGE", status_code=400, details=details
        )


class NoReportContextError(AmacusiReportsError):
    """A drilldown or export was requested before any report was generated."""

    error_type_uri: str = ERROR_TYPES["NO_REPORT_CONTEXT"]

    def __init__(
        self,
        message: str = "No report has been generated yet",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="NO_REPORT_CONTEXT", status_code=409, details=details
        )


class DocumentStoreError(AmacusiReportsError):
    """The backing document store could not serve a query."""

    error_type_uri: str = ERROR_TYPES["DOCUMENT_STORE_UNAVAILABLE"]

    def __init__(
        self,
        message: str = "Document store unavailable",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="DOCUMENT_STORE_UNAVAILABLE",
            status_code=503,
            details=details,
        )


# =============================================================================
# Exception Handlers (RFC 7807)
# =============================================================================


async def amacusi_exception_handler(
    _request: Request,
    exc: AmacusiReportsError,
) -> ProblemDetailResponse:
    """Handle AmacusiReportsError exceptions with RFC 7807 Problem Details.

    Args:
        _request: FastAPI request object.
        exc: The raised exception.

    Returns:
        RFC 7807 Problem Detail response.
    """
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "app.error_handled",
        error=exc.message,
        error_type=type(exc).__name__,
        error_code=exc.code,
        status_code=exc.status_code,
        details=exc.details,
    )

    return problem_response(
        status=exc.status_code,
        title=exc.title,
        detail=exc.message,
        error_code=exc.code,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> ProblemDetailResponse:
    """Handle Pydantic request validation errors.

    Args:
        request: FastAPI request object.
        exc: Pydantic validation error.

    Returns:
        RFC 7807 Problem Detail response with field-level errors.
    """
    field_errors: list[dict[str, str]] = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = ".".join(str(part) for part in loc if part not in ("body", "query", "path"))
        field_errors.append(
            {
                "field": field_path,
                "message": str(error.get("msg", "Validation failed")),
                "type": str(error.get("type", "unknown")),
            }
        )

    logger.warning(
        "app.validation_error",
        error_count=len(field_errors),
        path=str(request.url.path),
        fields=[e["field"] for e in field_errors],
    )

    return problem_response(
        status=422,
        title="Validation Error",
        detail=f"Request validation failed with {len(field_errors)} error(s).",
        error_code="VALIDATION_ERROR",
        errors=field_errors,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> ProblemDetailResponse:
    """Handle unexpected exceptions with RFC 7807 Problem Details."""
    logger.error(
        "app.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )

    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred while generating the report.",
        error_code="INTERNAL_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(AmacusiReportsError, amacusi_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
