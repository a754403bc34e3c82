"""
Health Check Endpoints
======================

Liveness and readiness probes. These endpoints do NOT require authentication.
"""

import logging
import time
from datetime import UTC, datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text

from tributary.api.config import settings
from tributary.core.database.session import get_engine

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)


class LivenessResponse(BaseModel):
    """Liveness probe response."""

    status: str
    timestamp: str
    version: str


class DependencyStatus(BaseModel):
    """Individual dependency status."""

    status: str
    latency_ms: float | None = None
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness probe response with dependency status."""

    status: str
    timestamp: str
    dependencies: dict[str, DependencyStatus]


@router.get(
    "",
    response_model=LivenessResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness Probe",
)
async def liveness() -> LivenessResponse:
    return LivenessResponse(
        status="healthy",
        timestamp=datetime.now(UTC).isoformat(),
        version=settings.app_version,
    )


async def _check_database() -> DependencyStatus:
    started = time.perf_counter()
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database readiness check failed: {e}")
        return DependencyStatus(status="unhealthy", error=str(e))
    return DependencyStatus(
        status="healthy", latency_ms=round((time.perf_counter() - started) * 1000, 2)
    )


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness Probe")
async def readiness():
    """Returns 503 while the metadata store is unreachable."""
    dependencies = {"postgres": await _check_database()}
    healthy = all(dep.status == "healthy" for dep in dependencies.values())
    body = ReadinessResponse(
        status="ready" if healthy else "not_ready",
        timestamp=datetime.now(UTC).isoformat(),
        dependencies=dependencies,
    )
    if healthy:
        return body
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump())
