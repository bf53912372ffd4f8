"""
SQLite storage for the workforce directory and local calendar sources.
"""

import sqlite3
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path

from core.config import DB_PATH
from models.events import DateRange, as_naive_local
from models.records import (
    CalendarBlock,
    LeaveRequest,
    LeaveStatus,
    PublicHoliday,
    Team,
    TeamMembership,
    Worker,
    WorkItem,
)
from services.ports import CalendarRepository, WorkforceDirectory

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS workers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        organization_id INTEGER NOT NULL,
        full_name TEXT,
        email TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS teams (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        organization_id INTEGER NOT NULL,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS team_members (
        team_id INTEGER NOT NULL,
        worker_id INTEGER NOT NULL,
        role TEXT NOT NULL DEFAULT 'member',
        PRIMARY KEY (team_id, worker_id),
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (worker_id) REFERENCES workers(id)
    )
    """,
    # One row per worker: a worker has at most one external admin mapping
    """
    CREATE TABLE IF NOT EXISTS worker_calendar_settings (
        worker_id INTEGER PRIMARY KEY,
        organization_id INTEGER NOT NULL,
        external_admin_id INTEGER,
        FOREIGN KEY (worker_id) REFERENCES workers(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS calendar_blocks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        organization_id INTEGER NOT NULL,
        worker_id INTEGER NOT NULL,
        title TEXT,
        block_type TEXT NOT NULL,
        start_datetime TEXT NOT NULL,
        end_datetime TEXT NOT NULL,
        is_all_day INTEGER NOT NULL DEFAULT 0,
        recurrence_rule TEXT,
        is_recurring INTEGER NOT NULL DEFAULT 0,
        is_private INTEGER NOT NULL DEFAULT 0,
        blocks_availability INTEGER NOT NULL DEFAULT 1,
        description TEXT,
        FOREIGN KEY (worker_id) REFERENCES workers(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS leave_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        organization_id INTEGER NOT NULL,
        worker_id INTEGER NOT NULL,
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        status TEXT NOT NULL CHECK(status IN ('pending', 'approved', 'rejected')),
        leave_type TEXT,
        days_count REAL,
        notes TEXT,
        FOREIGN KEY (worker_id) REFERENCES workers(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS public_holidays (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        organization_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        date TEXT NOT NULL,
        region TEXT,
        country TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS work_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        organization_id INTEGER NOT NULL,
        title TEXT NOT NULL,
        due_date TEXT,
        assigned_to INTEGER,
        team_id INTEGER,
        status TEXT,
        work_item_type TEXT,
        description TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        request_id TEXT UNIQUE NOT NULL,
        timestamp TEXT NOT NULL,
        endpoint TEXT NOT NULL,
        method TEXT NOT NULL,
        client_ip TEXT,
        organization_id INTEGER,
        query TEXT,
        status_code INTEGER NOT NULL,
        error_code TEXT,
        error_message TEXT,
        processing_time_ms INTEGER NOT NULL,
        events_returned INTEGER,
        slots_returned INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_request_details (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        request_id TEXT NOT NULL,
        detail_type TEXT NOT NULL CHECK(detail_type IN ('validation_error', 'source_error', 'warning')),
        message TEXT NOT NULL,
        FOREIGN KEY (request_id) REFERENCES api_requests(request_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_blocks_range ON calendar_blocks(organization_id, start_datetime, end_datetime)",
    "CREATE INDEX IF NOT EXISTS idx_leave_range ON leave_requests(organization_id, status, start_date, end_date)",
    "CREATE INDEX IF NOT EXISTS idx_work_items_due ON work_items(organization_id, due_date)",
    "CREATE INDEX IF NOT EXISTS idx_api_requests_timestamp ON api_requests(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_api_request_details_request ON api_request_details(request_id)",
]


def get_connection(db_path: Path | str = DB_PATH) -> sqlite3.Connection:
    """Get a database connection usable from the API worker threads."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they don't exist."""
    cursor = conn.cursor()
    for statement in SCHEMA:
        cursor.execute(statement)
    conn.commit()


def _in_clause(column: str, ids: list[int]) -> tuple[str, list[int]]:
    return f" AND {column} IN ({', '.join('?' for _ in ids)})", list(ids)


def _to_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class SqliteCalendarStore(WorkforceDirectory, CalendarRepository):
    """
    Directory and calendar repository backed by one SQLite connection.

    Worker and team filters follow the repository contract: None means no
    filter, an empty collection matches nothing.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # -------------------------------------------------------------------------
    # Directory
    # -------------------------------------------------------------------------

    def list_workers_in_org(self, organization_id: int) -> list[Worker]:
        rows = self.conn.execute(
            """
            SELECT w.id, w.full_name, w.email, w.is_active, s.external_admin_id
            FROM workers w
            LEFT JOIN worker_calendar_settings s ON s.worker_id = w.id
            WHERE w.organization_id = ?
            ORDER BY w.id
            """,
            (organization_id,),
        ).fetchall()
        return [
            Worker(
                id=row["id"],
                name=row["full_name"] or "",
                email=row["email"],
                is_active=bool(row["is_active"]),
                external_admin_id=row["external_admin_id"],
            )
            for row in rows
        ]

    def list_teams(self, organization_id: int) -> list[Team]:
        rows = self.conn.execute(
            "SELECT id, name FROM teams WHERE organization_id = ? ORDER BY id", (organization_id,)
        ).fetchall()
        return [Team(id=row["id"], name=row["name"]) for row in rows]

    def list_team_memberships(
        self, organization_id: int, team_ids: Iterable[int] | None = None
    ) -> list[TeamMembership]:
        query = """
            SELECT m.team_id, m.worker_id, m.role
            FROM team_members m
            JOIN teams t ON t.id = m.team_id
            WHERE t.organization_id = ?
        """
        params: list = [organization_id]
        if team_ids is not None:
            team_ids = list(team_ids)
            if not team_ids:
                return []
            clause, ids = _in_clause("m.team_id", team_ids)
            query += clause
            params += ids
        rows = self.conn.execute(query, params).fetchall()
        return [TeamMembership(team_id=r["team_id"], worker_id=r["worker_id"], role=r["role"]) for r in rows]

    def get_worker_external_mapping(self, organization_id: int, worker_id: int) -> int | None:
        row = self.conn.execute(
            "SELECT external_admin_id FROM worker_calendar_settings WHERE organization_id = ? AND worker_id = ?",
            (organization_id, worker_id),
        ).fetchone()
        return row["external_admin_id"] if row else None

    # -------------------------------------------------------------------------
    # Calendar sources
    # -------------------------------------------------------------------------

    def list_blocks(
        self, organization_id: int, date_range: DateRange, worker_ids: Iterable[int] | None = None
    ) -> list[CalendarBlock]:
        query = """
            SELECT * FROM calendar_blocks
            WHERE organization_id = ? AND start_datetime <= ? AND end_datetime >= ?
        """
        params: list = [organization_id, date_range.end_datetime.isoformat(), date_range.start_datetime.isoformat()]
        if worker_ids is not None:
            worker_ids = list(worker_ids)
            if not worker_ids:
                return []
            clause, ids = _in_clause("worker_id", worker_ids)
            query += clause
            params += ids
        rows = self.conn.execute(query + " ORDER BY start_datetime, id", params).fetchall()
        return [
            CalendarBlock(
                id=r["id"],
                worker_id=r["worker_id"],
                title=r["title"] or "",
                block_type=r["block_type"],
                start=as_naive_local(datetime.fromisoformat(r["start_datetime"])),
                end=as_naive_local(datetime.fromisoformat(r["end_datetime"])),
                is_all_day=bool(r["is_all_day"]),
                recurrence_rule=r["recurrence_rule"],
                is_recurring=bool(r["is_recurring"]),
                is_private=bool(r["is_private"]),
                blocks_availability=bool(r["blocks_availability"]),
                description=r["description"],
            )
            for r in rows
        ]

    def list_approved_leave(
        self, organization_id: int, date_range: DateRange, worker_ids: Iterable[int] | None = None
    ) -> list[LeaveRequest]:
        query = """
            SELECT * FROM leave_requests
            WHERE organization_id = ? AND status = ? AND start_date <= ? AND end_date >= ?
        """
        params: list = [
            organization_id,
            LeaveStatus.APPROVED.value,
            date_range.end.isoformat(),
            date_range.start.isoformat(),
        ]
        if worker_ids is not None:
            worker_ids = list(worker_ids)
            if not worker_ids:
                return []
            clause, ids = _in_clause("worker_id", worker_ids)
            query += clause
            params += ids
        rows = self.conn.execute(query + " ORDER BY start_date, id", params).fetchall()
        return [
            LeaveRequest(
                id=r["id"],
                worker_id=r["worker_id"],
                start_date=_to_date(r["start_date"]),
                end_date=_to_date(r["end_date"]),
                status=LeaveStatus(r["status"]),
                leave_type=r["leave_type"] or "Leave",
                days_count=r["days_count"],
                notes=r["notes"],
            )
            for r in rows
        ]

    def list_public_holidays(self, organization_id: int, date_range: DateRange) -> list[PublicHoliday]:
        rows = self.conn.execute(
            """
            SELECT * FROM public_holidays
            WHERE organization_id = ? AND date >= ? AND date <= ?
            ORDER BY date, id
            """,
            (organization_id, date_range.start.isoformat(), date_range.end.isoformat()),
        ).fetchall()
        return [
            PublicHoliday(
                id=r["id"], name=r["name"], date=_to_date(r["date"]), region=r["region"], country=r["country"]
            )
            for r in rows
        ]

    def list_work_items(
        self,
        organization_id: int,
        date_range: DateRange,
        worker_ids: Iterable[int] | None = None,
        team_ids: Iterable[int] | None = None,
    ) -> list[WorkItem]:
        query = """
            SELECT * FROM work_items
            WHERE organization_id = ? AND due_date >= ? AND due_date <= ?
        """
        params: list = [organization_id, date_range.start.isoformat(), date_range.end.isoformat()]
        # Items assigned to one of the workers or owned by one of the teams
        conditions = []
        for column, ids in (("assigned_to", worker_ids), ("team_id", team_ids)):
            if ids is None:
                continue
            ids = list(ids)
            if ids:
                conditions.append(f"{column} IN ({', '.join('?' for _ in ids)})")
                params += ids
        if worker_ids is not None or team_ids is not None:
            if not conditions:
                return []
            query += f" AND ({' OR '.join(conditions)})"
        rows = self.conn.execute(query + " ORDER BY due_date, id", params).fetchall()
        return [
            WorkItem(
                id=r["id"],
                title=r["title"],
                due_date=_to_date(r["due_date"]),
                assignee_id=r["assigned_to"],
                team_id=r["team_id"],
                status=r["status"],
                work_item_type=r["work_item_type"],
                description=r["description"],
            )
            for r in rows
        ]
