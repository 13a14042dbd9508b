"""
Health Check Routes

System health and status endpoints.
"""

import logging
from importlib.metadata import PackageNotFoundError, version

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from roomcheck.database import get_db
from roomcheck.dependencies import get_oracle
from roomcheck.schemas import HealthResponse
from roomcheck.services.lock import get_submission_lock
from roomcheck.services.oracle import OracleClient
from roomcheck.services.storage import get_storage_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


def get_version() -> str:
    try:
        return version("roomcheck")
    except PackageNotFoundError:
        return "unknown"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """
    Health check endpoint.

    Returns overall system health and individual service statuses.
    """
    services = {}

    # Check database
    try:
        await db.execute(text("SELECT 1"))
        services["database"] = "healthy"
    except Exception as e:
        logger.error("Database health check failed: %s", type(e).__name__)
        services["database"] = "unhealthy"

    # Check Redis
    try:
        services["redis"] = "healthy" if get_submission_lock().health_check() else "unhealthy"
    except Exception as e:
        logger.error("Redis health check failed: %s", type(e).__name__)
        services["redis"] = "unhealthy"

    # Check MinIO
    try:
        services["storage"] = "healthy" if get_storage_service().check_connection() else "unhealthy"
    except Exception as e:
        logger.error("Storage health check failed: %s", type(e).__name__)
        services["storage"] = "unhealthy"

    all_healthy = all(s == "healthy" for s in services.values())

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        version=get_version(),
        services=services,
    )


@router.get("/health/live")
async def liveness():
    """
    Kubernetes liveness probe.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(db: AsyncSession = Depends(get_db)):
    """Kubernetes readiness probe."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception:
        logger.error("Readiness check failed")
        return {"status": "not ready"}


@router.get("/health/oracle")
async def oracle_diagnostics(oracle: OracleClient = Depends(get_oracle)):
    """Scoring oracle configuration and a live connection test."""
    diagnostics = oracle.diagnostics()
    diagnostics["connection_test"] = await oracle.check_connection()
    return diagnostics
