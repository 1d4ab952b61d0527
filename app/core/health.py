"""Health check endpoints."""

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import get_session_maker
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "degraded", "unhealthy"]
    database: Literal["connected", "disconnected"] | None = None
    missing_config: list[str] | None = None


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health_check() -> HealthResponse:
    """Basic liveness check.

    Returns:
        Health status response.
    """
    logger.debug("health.check_started")
    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=HealthResponse, response_model_exclude_none=True)
async def readiness_check() -> HealthResponse:
    """Readiness check including configuration and database connectivity.

    Returns:
        ``ok`` when fully configured and connected, ``degraded`` when the
        database answers but the webhook secret is unset, else ``unhealthy``.
    """
    logger.debug("health.readiness_check_started")
    missing = get_settings().missing_required

    try:
        async with get_session_maker()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(
            "health.database_disconnected",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return HealthResponse(
            status="unhealthy", database="disconnected", missing_config=missing or None
        )

    logger.info("health.database_connected")
    return HealthResponse(
        status="degraded" if missing else "ok",
        database="connected",
        missing_config=missing or None,
    )
