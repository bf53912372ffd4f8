"""
Collaborator interfaces the calendar services depend on.

Concrete adapters live in core.database (SQLite) and core.scheduling_client (HTTP).
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from models.events import DateRange
from models.records import (
    CalendarBlock,
    LeaveRequest,
    PublicHoliday,
    Team,
    TeamMembership,
    Worker,
    WorkItem,
)


class WorkforceDirectory(ABC):
    @abstractmethod
    def list_workers_in_org(self, organization_id: int) -> list[Worker]:
        """Return workers with their external mapping populated."""

    @abstractmethod
    def list_teams(self, organization_id: int) -> list[Team]:
        pass

    @abstractmethod
    def list_team_memberships(
        self, organization_id: int, team_ids: Iterable[int] | None = None
    ) -> list[TeamMembership]:
        pass

    @abstractmethod
    def get_worker_external_mapping(self, organization_id: int, worker_id: int) -> int | None:
        pass


class CalendarRepository(ABC):
    """Range-scoped reads; every method returns records overlapping the inclusive range."""

    @abstractmethod
    def list_blocks(
        self, organization_id: int, date_range: DateRange, worker_ids: Iterable[int] | None = None
    ) -> list[CalendarBlock]:
        pass

    @abstractmethod
    def list_approved_leave(
        self, organization_id: int, date_range: DateRange, worker_ids: Iterable[int] | None = None
    ) -> list[LeaveRequest]:
        pass

    @abstractmethod
    def list_public_holidays(self, organization_id: int, date_range: DateRange) -> list[PublicHoliday]:
        pass

    @abstractmethod
    def list_work_items(
        self,
        organization_id: int,
        date_range: DateRange,
        worker_ids: Iterable[int] | None = None,
        team_ids: Iterable[int] | None = None,
    ) -> list[WorkItem]:
        pass


class SchedulingClient(ABC):
    """Pre-authenticated client for the external scheduling system; returns native records."""

    @abstractmethod
    def list_tasks(self, filters: dict[str, Any] | None = None) -> list[dict]:
        pass

    @abstractmethod
    def list_teams(self) -> list[dict]:
        pass

    @abstractmethod
    def list_administrators(self) -> list[dict]:
        pass
