"""Pydantic response models for API endpoints."""

from typing import Any

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str  # "healthy" or "unhealthy"
    version: str
    database_available: bool
    external_configured: bool
    timestamp: str  # ISO 8601 UTC
    error: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
    details: list[str] = []


class CombinedCalendarResponse(BaseModel):
    """Combined calendar view; per-source failures are listed in metadata.errors."""

    success: bool = True
    events: list[dict[str, Any]]
    metadata: dict[str, Any]


class SlotsResponse(BaseModel):
    success: bool = True
    slots: list[dict[str, Any]]
    count: int


class TeamAvailabilityResponse(BaseModel):
    success: bool = True
    slots: list[dict[str, Any]]
    per_member: dict[str, list[dict[str, Any]]]
    count: int


class FiltersResponse(BaseModel):
    success: bool = True
    filters: dict[str, Any]


class ErrorCodes:
    """Error code constants."""

    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
