"""API Pydantic models."""

from .responses import (
    CombinedCalendarResponse,
    ErrorCodes,
    ErrorResponse,
    FiltersResponse,
    HealthResponse,
    SlotsResponse,
    TeamAvailabilityResponse,
)

__all__ = [
    "HealthResponse",
    "ErrorResponse",
    "ErrorCodes",
    "CombinedCalendarResponse",
    "SlotsResponse",
    "TeamAvailabilityResponse",
    "FiltersResponse",
]
