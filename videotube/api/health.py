"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from videotube.database import health_check as db_health_check
from videotube.models.response import ApiResponse

router = APIRouter(prefix="/api/v1/healthcheck", tags=["Health"])


@router.get("")
async def health_check() -> ApiResponse[dict]:
    """Report service and database health.

    Returns:
        Envelope with status, timestamp in ISO8601 format and database state
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        db_healthy = await db_health_check()
        health_status["database"] = "healthy" if db_healthy else "unhealthy"
    except RuntimeError:
        # Pool never came up at startup
        health_status["database"] = "unavailable"

    return ApiResponse(status_code=200, data=health_status, message="OK")
