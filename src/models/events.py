"""
Canonical calendar shapes produced by the aggregation and availability services.

Events and slots are derived per request and never persisted.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any


class EventSource(str, Enum):
    """Independent origin of calendar data."""

    EXTERNAL_TASKS = "external_tasks"
    WORK_ITEMS = "work_items"
    LEAVE = "leave"
    PUBLIC_HOLIDAYS = "public_holidays"
    BLOCKS = "blocks"


class EventType(str, Enum):
    EXTERNAL_TASK = "external_task"
    WORK_ITEM = "work_item"
    LEAVE = "leave"
    PUBLIC_HOLIDAY = "public_holiday"
    BLOCK = "block"


# Event ids are "<prefix><record id>" so they stay unique across sources
EVENT_ID_PREFIXES = {
    EventSource.EXTERNAL_TASKS: "external-task-",
    EventSource.WORK_ITEMS: "work-item-",
    EventSource.LEAVE: "leave-",
    EventSource.PUBLIC_HOLIDAYS: "public-holiday-",
    EventSource.BLOCKS: "block-",
}

SOURCE_EVENT_TYPES = {
    EventSource.EXTERNAL_TASKS: EventType.EXTERNAL_TASK,
    EventSource.WORK_ITEMS: EventType.WORK_ITEM,
    EventSource.LEAVE: EventType.LEAVE,
    EventSource.PUBLIC_HOLIDAYS: EventType.PUBLIC_HOLIDAY,
    EventSource.BLOCKS: EventType.BLOCK,
}


def as_naive_local(value: datetime) -> datetime:
    """Offset-carrying timestamps are converted to local wall-clock time; the engine compares naive values only."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, time.min)

    @property
    def end_datetime(self) -> datetime:
        """Last instant of the final day."""
        return datetime.combine(self.end, time.max)

    def days(self):
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def contains_day(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class WorkingHours:
    start: time
    end: time


@dataclass(frozen=True)
class BusyInterval:
    """Half-open [start, end) interval during which a worker cannot be booked."""

    start: datetime
    end: datetime
    source: EventSource | None = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start


@dataclass
class Event:
    """Normalized calendar event."""

    id: str
    title: str
    start: datetime
    end: datetime
    all_day: bool
    type: EventType
    color: str
    source: EventSource
    worker_id: int | None = None
    worker_name: str | None = None
    external_admin_id: int | None = None
    status: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        if self.all_day:
            start, end = self.start.date().isoformat(), self.end.date().isoformat()
        else:
            start, end = self.start.isoformat(), self.end.isoformat()
        return {
            "id": self.id,
            "title": self.title,
            "start": start,
            "end": end,
            "allDay": self.all_day,
            "type": self.type.value,
            "color": self.color,
            "workerId": self.worker_id,
            "workerName": self.worker_name,
            "externalAdminId": self.external_admin_id,
            "status": self.status,
            "source": self.source.value,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class Slot:
    """Candidate bookable interval."""

    start: datetime
    end: datetime
    display_time: str
    display_date: str
    free_members: tuple[int, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "datetime": self.start.isoformat(),
            "end": self.end.isoformat(),
            "displayTime": self.display_time,
            "displayDate": self.display_date,
        }
        if self.free_members is not None:
            data["freeMembers"] = list(self.free_members)
        return data
