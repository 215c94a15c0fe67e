"""Health check endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.core.logging import get_logger
from app.features.documents import DocumentStore, get_document_store

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "degraded", "unhealthy"]
    document_store: Literal["connected", "disconnected"] | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Health status response.
    """
    logger.debug("health.check_started")
    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(
    store: DocumentStore = Depends(get_document_store),
) -> HealthResponse:
    """Readiness check including document store connectivity.

    Runs a trivial round trip against the store; no collection is read.

    Args:
        store: Document store dependency.

    Returns:
        Health status with document store state.
    """
    logger.debug("health.readiness_check_started")

    try:
        await store.ping()
        logger.info("health.document_store_connected")
        return HealthResponse(status="ok", document_store="connected")
    except Exception as e:
        logger.error(
            "health.document_store_disconnected",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return HealthResponse(status="unhealthy", document_store="disconnected")
