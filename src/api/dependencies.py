"""FastAPI dependencies for authentication and shared resources."""

import secrets
from collections.abc import Iterator

from fastapi import Header, HTTPException, status

from api.models.responses import ErrorCodes
from core.config import CREW_CALENDAR_API_KEY, DB_PATH
from core.database import SqliteCalendarStore, get_connection
from core.scheduling_client import get_scheduling_client
from services.directory_cache import ExternalDirectoryCache
from services.ports import SchedulingClient

_directory_cache = ExternalDirectoryCache()


async def verify_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> str:
    """
    Verify API key from X-API-Key header.

    Raises:
        HTTPException: 401 if key is missing or invalid
    """
    if not CREW_CALENDAR_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "API key not configured on server",
                "code": ErrorCodes.INTERNAL_ERROR,
                "details": [],
            },
        )

    # Use constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(x_api_key, CREW_CALENDAR_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "Invalid or missing API key",
                "code": ErrorCodes.UNAUTHORIZED,
                "details": [],
            },
        )

    return x_api_key


async def get_organization_id(x_organization_id: int = Header(..., alias="X-Organization-Id")) -> int:
    """Organization whose calendar data the request reads."""
    return x_organization_id


def get_store() -> Iterator[SqliteCalendarStore]:
    """Per-request SQLite store serving as both directory and repository."""
    conn = get_connection(DB_PATH)
    try:
        yield SqliteCalendarStore(conn)
    finally:
        conn.close()


def get_client() -> SchedulingClient | None:
    return get_scheduling_client()


def get_directory_cache() -> ExternalDirectoryCache:
    return _directory_cache
