"""Health check endpoints."""

import os
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel

from driver_payroll.services import get_services, has_services

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    storage: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
def health_check() -> HealthResponse:
    """Check API and data directory health."""
    storage_status = "unavailable"
    if has_services():
        data_dir = get_services().settings.data_dir
        writable = not data_dir.exists() or os.access(data_dir, os.W_OK)
        storage_status = "healthy" if writable else "read-only"

    return HealthResponse(
        status="healthy" if storage_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        storage=storage_status,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready" if has_services() else "starting"}


@router.get("/live", status_code=status.HTTP_200_OK)
def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
