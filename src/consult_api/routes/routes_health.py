"""Health check endpoints for monitoring application status."""

from datetime import datetime
from datetime import timezone

from fastapi import APIRouter
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

SERVICE_NAME = "Consultation Workflow API"
SERVICE_VERSION = "v1"

ROUTER_HEALTH = APIRouter(tags=["Health"])


@ROUTER_HEALTH.get(
    "/health",
    summary="Health check endpoint",
    description="Basic health check that returns application status and metadata",
    responses={
        status.HTTP_200_OK: {
            "description": "Application is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2026-01-05T12:00:00.000000Z",
                        "service": SERVICE_NAME,
                        "version": SERVICE_VERSION,
                        "workflow_enabled": True,
                    }
                }
            },
        }
    },
)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Lightweight liveness probe; does not touch the database.
    """
    response_data = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "workflow_enabled": getattr(request.app.state, "workflow", None) is not None,
    }

    logger.debug("Health check requested", status="healthy")

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response_data,
    )


@ROUTER_HEALTH.get(
    "/health/ready",
    summary="Readiness check endpoint",
    description="Checks that the workflow database pool answers a trivial query",
    responses={
        status.HTTP_200_OK: {"description": "Database reachable"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Database not configured or unreachable"},
    },
)
async def readiness_check(request: Request):
    """
    Readiness probe.

    Returns 503 when the workflow database is not configured or the pool health check fails.
    """
    pool = getattr(request.app.state, "db_pool", None)
    database_ok = pool is not None and await pool.health_check()

    response_data = {
        "status": "ready" if database_ok else "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "ok" if database_ok else ("not_configured" if pool is None else "unreachable"),
    }

    if not database_ok:
        logger.warning("Readiness check failed", database=response_data["database"])
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=response_data)

    return JSONResponse(status_code=status.HTTP_200_OK, content=response_data)
