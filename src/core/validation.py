"""
Request parameter parsing and validation.
"""

import re
from datetime import date, datetime, time

from core.config import WORKING_HOURS_END, WORKING_HOURS_START
from core.errors import ConfigurationError
from models.events import DateRange, WorkingHours

DURATION_PATTERN = re.compile(r"^\s*(?:(\d+)\s*h)?\s*(?:(\d+)\s*m)?\s*$", re.IGNORECASE)


def parse_day(value: str | None, name: str) -> date:
    """Parse a YYYY-MM-DD calendar day."""
    if not value:
        raise ConfigurationError(f"{name} is required")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ConfigurationError(f"{name} must be formatted YYYY-MM-DD, got '{value}'")


def parse_date_range(start_date: str | None, end_date: str | None) -> DateRange:
    """
    Build the inclusive request window.

    Raises:
        ConfigurationError: if either bound is missing or unparsable, or end precedes start
    """
    start = parse_day(start_date, "start_date")
    end = parse_day(end_date, "end_date")
    if end < start:
        raise ConfigurationError(f"end_date {end} is before start_date {start}")
    return DateRange(start=start, end=end)


def parse_id_list(value: str | None) -> list[int]:
    """Parse a comma-separated id list, dropping entries that are not integers."""
    if not value:
        return []
    ids = []
    for part in value.split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.append(int(part))
    return ids


def parse_duration(value: str | int | None) -> int:
    """
    Parse a duration to minutes.

    Accepts "2h 30m", "1h", "45m" or a bare number of minutes.
    """
    if value is None or value == "":
        raise ConfigurationError("duration is required")
    if isinstance(value, int):
        minutes = value
    elif value.strip().isdigit():
        minutes = int(value.strip())
    else:
        match = DURATION_PATTERN.match(value)
        if not match or not any(match.groups()):
            raise ConfigurationError(f"Invalid duration '{value}', expected e.g. '1h', '2h 30m' or '45m'")
        hours, mins = match.groups()
        minutes = int(hours or 0) * 60 + int(mins or 0)
    if minutes <= 0:
        raise ConfigurationError("duration must be greater than zero")
    return minutes


def parse_travel_time(value: int | None) -> int:
    if value is None:
        return 0
    if value < 0:
        raise ConfigurationError("travel_time cannot be negative")
    return value


def parse_time_of_day(value: str) -> time:
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError:
        raise ConfigurationError(f"Invalid time of day '{value}', expected HH:MM")


def default_working_hours() -> WorkingHours:
    """Working-hours window from configuration."""
    start = parse_time_of_day(WORKING_HOURS_START)
    end = parse_time_of_day(WORKING_HOURS_END)
    if end <= start:
        raise ConfigurationError(f"Working hours end {end} must be after start {start}")
    return WorkingHours(start=start, end=end)
