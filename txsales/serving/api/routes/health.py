"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from txsales.config import get_settings
from txsales.database.connection import check_database_health
from txsales.serving.api.dependencies import AppComponents, get_components

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(components: AppComponents = Depends(get_components)) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity
    - Query cache
    - Refresh scheduler
    """
    settings = get_settings()
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    db_health = await check_database_health(components.store.session_factory)
    checks["database"] = db_health
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"

    checks["cache"] = {"status": "healthy", **components.cache.stats()}

    if components.scheduler is not None:
        checks["scheduler"] = components.scheduler.status
        if components.scheduler.last_error and overall_status == "healthy":
            overall_status = "degraded"

    checks["importer"] = components.importer.status()

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    components: AppComponents = Depends(get_components),
) -> Dict[str, str]:
    """
    Readiness probe endpoint.

    Returns 200 if the database answers, 503 otherwise.
    """
    db_health = await check_database_health(components.store.session_factory)
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}

    return {"status": "ready"}
