"""
Source records read from the local repository, the workforce directory
and the external scheduling system.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExternalAssigneeKind(str, Enum):
    ADMINISTRATOR = "assigned_to_administrator"
    TEAM = "assigned_to_team"


# =============================================================================
# WORKFORCE DIRECTORY
# =============================================================================


@dataclass
class Worker:
    id: int
    name: str
    email: str
    is_active: bool = True
    external_admin_id: int | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email


@dataclass
class Team:
    id: int
    name: str


@dataclass
class TeamMembership:
    team_id: int
    worker_id: int
    role: str = "member"


@dataclass
class ExternalTeam:
    id: int
    title: str
    member_admin_ids: list[int] = field(default_factory=list)
    partner_id: int | None = None
    color: str | None = None


@dataclass
class ExternalAdministrator:
    id: int
    name: str
    login: str = ""
    email: str = ""
    is_active: bool = True


# =============================================================================
# CALENDAR SOURCES
# =============================================================================


@dataclass
class CalendarBlock:
    id: int
    worker_id: int
    title: str
    block_type: str
    start: datetime
    end: datetime
    is_all_day: bool = False
    recurrence_rule: str | None = None
    is_recurring: bool = False
    is_private: bool = False
    blocks_availability: bool = True
    description: str | None = None


@dataclass
class LeaveRequest:
    id: int
    worker_id: int
    start_date: date
    end_date: date
    status: LeaveStatus
    leave_type: str = "Leave"
    days_count: float | None = None
    notes: str | None = None


@dataclass
class PublicHoliday:
    id: int
    name: str
    date: date
    region: str | None = None
    country: str | None = None


@dataclass
class WorkItem:
    id: int
    title: str
    due_date: date | None
    assignee_id: int | None = None
    team_id: int | None = None
    status: str | None = None
    work_item_type: str | None = None
    description: str | None = None


@dataclass
class ExternalTask:
    """Job scheduled in the external system, parsed from its native record."""

    id: int
    title: str
    scheduled_start: datetime | None
    duration_minutes: int
    assignee_kind: ExternalAssigneeKind | None = None
    assignee_id: int | None = None
    status: str | None = None
    project_id: int | None = None
    customer_id: int | None = None
    location: str | None = None
    workflow_status_id: int | None = None

    @property
    def scheduled_end(self) -> datetime | None:
        if self.scheduled_start is None:
            return None
        return self.scheduled_start + timedelta(minutes=self.duration_minutes)

    @property
    def admin_id(self) -> int | None:
        if self.assignee_kind == ExternalAssigneeKind.TEAM:
            return None
        return self.assignee_id

    @property
    def team_id(self) -> int | None:
        if self.assignee_kind == ExternalAssigneeKind.TEAM:
            return self.assignee_id
        return None
