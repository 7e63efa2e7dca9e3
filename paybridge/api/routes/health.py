"""
Health API Routes
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from paybridge.schemas.health import HealthStatus

router = APIRouter()


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Liveness probe; no auth and no upstream calls."""
    return HealthStatus(status="OK", timestamp=datetime.now(timezone.utc).isoformat())
