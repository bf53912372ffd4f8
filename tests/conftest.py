"""
Pytest configuration and shared fixtures.
"""

import sys
from datetime import date, datetime
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent / "fixtures"))

from models.events import DateRange, as_naive_local  # noqa: E402
from models.records import (  # noqa: E402
    CalendarBlock,
    LeaveRequest,
    LeaveStatus,
    PublicHoliday,
    Team,
    TeamMembership,
    Worker,
    WorkItem,
)
from services.ports import CalendarRepository, SchedulingClient, WorkforceDirectory  # noqa: E402

ORG_ID = 1


def _matches(ids, value) -> bool:
    return ids is None or value in set(ids)


class FakeDirectory(WorkforceDirectory):
    def __init__(self, workers=(), teams=(), memberships=()):
        self.workers = list(workers)
        self.teams = list(teams)
        self.memberships = list(memberships)

    def list_workers_in_org(self, organization_id):
        return list(self.workers)

    def list_teams(self, organization_id):
        return list(self.teams)

    def list_team_memberships(self, organization_id, team_ids=None):
        return [m for m in self.memberships if _matches(team_ids, m.team_id)]

    def get_worker_external_mapping(self, organization_id, worker_id):
        for worker in self.workers:
            if worker.id == worker_id:
                return worker.external_admin_id
        return None


class FakeRepository(CalendarRepository):
    """In-memory repository honoring the overlap and filter contract."""

    def __init__(self, blocks=(), leave=(), holidays=(), work_items=()):
        self.blocks = list(blocks)
        self.leave = list(leave)
        self.holidays = list(holidays)
        self.work_items = list(work_items)
        self.failing: set[str] = set()
        self.calls: list[tuple] = []

    def _check(self, name, *args):
        self.calls.append((name, *args))
        if name in self.failing:
            raise RuntimeError(f"{name} backend down")

    def list_blocks(self, organization_id, date_range, worker_ids=None):
        self._check("blocks", worker_ids)
        return [
            b
            for b in self.blocks
            if as_naive_local(b.start) <= date_range.end_datetime
            and as_naive_local(b.end) >= date_range.start_datetime
            and _matches(worker_ids, b.worker_id)
        ]

    def list_approved_leave(self, organization_id, date_range, worker_ids=None):
        self._check("leave", worker_ids)
        return [
            r
            for r in self.leave
            if r.status == LeaveStatus.APPROVED
            and r.start_date <= date_range.end
            and r.end_date >= date_range.start
            and _matches(worker_ids, r.worker_id)
        ]

    def list_public_holidays(self, organization_id, date_range):
        self._check("public_holidays")
        return [h for h in self.holidays if date_range.contains_day(h.date)]

    def list_work_items(self, organization_id, date_range, worker_ids=None, team_ids=None):
        self._check("work_items", worker_ids, team_ids)
        items = [i for i in self.work_items if i.due_date and date_range.contains_day(i.due_date)]
        if worker_ids is None and team_ids is None:
            return items
        return [
            i
            for i in items
            if (worker_ids is not None and i.assignee_id in set(worker_ids))
            or (team_ids is not None and i.team_id in set(team_ids))
        ]


class FakeSchedulingClient(SchedulingClient):
    """Serves native records; records every list_tasks filter it receives."""

    def __init__(self, tasks=(), teams=(), administrators=()):
        self.tasks = list(tasks)
        self.teams = list(teams)
        self.administrators = list(administrators)
        self.task_filters: list[dict] = []
        self.fail_tasks = False
        self.fail_directory = False
        self.directory_calls = 0

    def list_tasks(self, filters=None):
        self.task_filters.append(dict(filters or {}))
        if self.fail_tasks:
            raise RuntimeError("external system timed out")
        # Server-side filtering is deliberately ignored: callers must filter themselves
        return list(self.tasks)

    def list_teams(self):
        self.directory_calls += 1
        if self.fail_directory:
            raise RuntimeError("teams endpoint down")
        return list(self.teams)

    def list_administrators(self):
        self.directory_calls += 1
        if self.fail_directory:
            raise RuntimeError("administrators endpoint down")
        return list(self.administrators)


def external_task(task_id, admin_id, scheduled_from, duration_hours=1, **extra):
    """Native external task record assigned to an administrator."""
    return {
        "id": task_id,
        "title": f"Install #{task_id}",
        "assigned_to": "assigned_to_administrator",
        "assignee": admin_id,
        "scheduled_from": scheduled_from,
        "scheduled_duration_hours": duration_hours,
        "scheduled_duration_minutes": 0,
        "workflow_status_id": 2,
        **extra,
    }


@pytest.fixture
def feb_week():
    """Mon 2025-02-10 to Fri 2025-02-14."""
    return DateRange(start=date(2025, 2, 10), end=date(2025, 2, 14))


@pytest.fixture
def workers():
    return [
        Worker(id=1, name="Alice Moore", email="alice@example.com", external_admin_id=101),
        Worker(id=2, name="Bob Diaz", email="bob@example.com", external_admin_id=102),
        Worker(id=3, name="", email="carol@example.com"),
    ]


@pytest.fixture
def directory(workers):
    return FakeDirectory(
        workers=workers,
        teams=[Team(id=10, name="Installers"), Team(id=20, name="Empty crew")],
        memberships=[
            TeamMembership(team_id=10, worker_id=1),
            TeamMembership(team_id=10, worker_id=2),
        ],
    )


@pytest.fixture
def repository():
    return FakeRepository(
        blocks=[
            CalendarBlock(
                id=5,
                worker_id=1,
                title="Dentist",
                block_type="personal",
                start=datetime(2025, 2, 11, 13, 0),
                end=datetime(2025, 2, 11, 14, 0),
                is_private=True,
                description="Root canal",
            ),
        ],
        leave=[
            LeaveRequest(
                id=7,
                worker_id=2,
                start_date=date(2025, 2, 12),
                end_date=date(2025, 2, 12),
                status=LeaveStatus.APPROVED,
                leave_type="Annual",
            ),
            LeaveRequest(
                id=8,
                worker_id=1,
                start_date=date(2025, 2, 13),
                end_date=date(2025, 2, 13),
                status=LeaveStatus.PENDING,
                leave_type="Annual",
            ),
        ],
        holidays=[PublicHoliday(id=3, name="Founders Day", date=date(2025, 2, 14))],
        work_items=[
            WorkItem(id=9, title="Submit permit", due_date=date(2025, 2, 10), assignee_id=1),
            WorkItem(id=11, title="Order stock", due_date=date(2025, 2, 11), team_id=10),
        ],
    )


@pytest.fixture
def scheduling_client():
    return FakeSchedulingClient(
        tasks=[
            external_task(1001, 101, "2025-02-10 10:00:00", duration_hours=2),
            external_task(1002, 102, "2025-02-11 09:00:00"),
            external_task(1003, 101, "2025-03-01 09:00:00"),
            external_task(1004, 999, "2025-02-10 15:00:00"),
            {
                "id": 1005,
                "title": "Crew job",
                "assigned_to": "assigned_to_team",
                "assignee": 50,
                "scheduled_from": "2025-02-13 11:00:00",
                "scheduled_duration_hours": 3,
            },
            {"id": "", "title": "Broken"},
            {"id": 1006, "title": "Unscheduled", "assigned_to": "assigned_to_administrator", "assignee": 101,
             "scheduled_from": "0000-00-00 00:00:00"},
        ],
        teams=[{"id": 50, "title": "North crew", "admin_ids": "101, 103"}],
        administrators=[
            {"id": 101, "name": "Alice M.", "email": "alice@example.com"},
            {"id": 102, "name": "Bob D.", "email": "bob@example.com"},
            {"id": 103, "name": "Dana K.", "email": "dana@example.com"},
            {"id": 999, "name": "Outside contractor"},
        ],
    )
