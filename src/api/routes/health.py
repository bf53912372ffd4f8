"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.models.responses import HealthResponse
from core.config import API_VERSION, DB_PATH
from core.scheduling_client import get_scheduling_client

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns 200 if the calendar database is present, 503 otherwise.
    An unconfigured external scheduling system is reported but does not make the service unhealthy.
    """
    database_available = DB_PATH.exists()
    external_configured = get_scheduling_client() is not None
    timestamp = datetime.now(timezone.utc).isoformat()

    if database_available:
        return HealthResponse(
            status="healthy",
            version=API_VERSION,
            database_available=True,
            external_configured=external_configured,
            timestamp=timestamp,
        )
    else:
        return JSONResponse(
            status_code=503,
            content=HealthResponse(
                status="unhealthy",
                version=API_VERSION,
                database_available=False,
                external_configured=external_configured,
                timestamp=timestamp,
                error="Calendar database not found",
            ).model_dump(),
        )
