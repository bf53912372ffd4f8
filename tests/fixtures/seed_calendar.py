#!/usr/bin/env python3
"""
Seed a crew calendar database with fake workers, teams and calendar records.

The insert helpers are also used by the database tests.

Usage:
    uv run python tests/fixtures/seed_calendar.py --org 1 --start 2025-02-10 --weeks 2
"""

import argparse
import random
import sqlite3
import sys
from datetime import date, datetime, timedelta
from pathlib import Path

from faker import Faker

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from core.config import DB_PATH  # noqa: E402
from core.database import create_schema, get_connection  # noqa: E402

fake = Faker()

BLOCK_TYPES = ["personal", "training", "travel", "maintenance"]
LEAVE_TYPES = ["Annual", "Sick", "Personal"]
WORK_ITEM_TYPES = ["permit", "quote", "follow_up", "inspection"]


def insert_worker(conn, org_id, name, email, external_admin_id=None, is_active=True):
    cursor = conn.execute(
        "INSERT INTO workers (organization_id, full_name, email, is_active) VALUES (?, ?, ?, ?)",
        (org_id, name, email, int(is_active)),
    )
    worker_id = cursor.lastrowid
    if external_admin_id is not None:
        conn.execute(
            "INSERT INTO worker_calendar_settings (worker_id, organization_id, external_admin_id) VALUES (?, ?, ?)",
            (worker_id, org_id, external_admin_id),
        )
    return worker_id


def insert_team(conn, org_id, name, member_ids=()):
    team_id = conn.execute("INSERT INTO teams (organization_id, name) VALUES (?, ?)", (org_id, name)).lastrowid
    for worker_id in member_ids:
        conn.execute("INSERT INTO team_members (team_id, worker_id) VALUES (?, ?)", (team_id, worker_id))
    return team_id


def insert_block(conn, org_id, worker_id, start, end, title="Busy", block_type="personal", **flags):
    return conn.execute(
        """
        INSERT INTO calendar_blocks (
            organization_id, worker_id, title, block_type, start_datetime, end_datetime,
            is_all_day, recurrence_rule, is_recurring, is_private, blocks_availability, description
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            org_id,
            worker_id,
            title,
            block_type,
            start.isoformat(),
            end.isoformat(),
            int(flags.get("is_all_day", False)),
            flags.get("recurrence_rule"),
            int(flags.get("is_recurring", False)),
            int(flags.get("is_private", False)),
            int(flags.get("blocks_availability", True)),
            flags.get("description"),
        ),
    ).lastrowid


def insert_leave(conn, org_id, worker_id, start_date, end_date, status="approved", leave_type="Annual"):
    return conn.execute(
        """
        INSERT INTO leave_requests (organization_id, worker_id, start_date, end_date, status, leave_type, days_count)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            org_id,
            worker_id,
            start_date.isoformat(),
            end_date.isoformat(),
            status,
            leave_type,
            (end_date - start_date).days + 1,
        ),
    ).lastrowid


def insert_holiday(conn, org_id, name, day, region=None):
    return conn.execute(
        "INSERT INTO public_holidays (organization_id, name, date, region) VALUES (?, ?, ?, ?)",
        (org_id, name, day.isoformat(), region),
    ).lastrowid


def insert_work_item(conn, org_id, title, due_date, assigned_to=None, team_id=None, status="open"):
    return conn.execute(
        """
        INSERT INTO work_items (organization_id, title, due_date, assigned_to, team_id, status, work_item_type)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            org_id,
            title,
            due_date.isoformat() if due_date else None,
            assigned_to,
            team_id,
            status,
            random.choice(WORK_ITEM_TYPES),
        ),
    ).lastrowid


def workdays(start: date, weeks: int):
    for offset in range(weeks * 7):
        day = start + timedelta(days=offset)
        if day.weekday() < 5:
            yield day


def seed(conn: sqlite3.Connection, org_id: int, start: date, weeks: int, crew_size: int = 6) -> dict:
    """Insert a fake crew and a few weeks of commitments. Returns row counts."""
    counts = {"workers": 0, "blocks": 0, "leave": 0, "work_items": 0}

    worker_ids = []
    for i in range(crew_size):
        name = fake.name()
        # Leave some workers unmapped so mapping gaps show up in the directory listing
        external_admin_id = 100 + i if i % 3 else None
        worker_ids.append(insert_worker(conn, org_id, name, fake.email(), external_admin_id))
    counts["workers"] = len(worker_ids)

    half = len(worker_ids) // 2
    team_ids = [
        insert_team(conn, org_id, f"{fake.city()} crew", worker_ids[:half]),
        insert_team(conn, org_id, f"{fake.city()} crew", worker_ids[half:]),
    ]

    days = list(workdays(start, weeks))
    for day in days:
        for worker_id in worker_ids:
            if random.random() < 0.25:
                hour = random.randint(9, 15)
                begin = datetime.combine(day, datetime.min.time()) + timedelta(hours=hour)
                insert_block(
                    conn,
                    org_id,
                    worker_id,
                    begin,
                    begin + timedelta(minutes=random.choice([30, 60, 90, 120])),
                    title=fake.sentence(nb_words=3).rstrip("."),
                    block_type=random.choice(BLOCK_TYPES),
                    is_private=random.random() < 0.2,
                )
                counts["blocks"] += 1
            if random.random() < 0.15:
                insert_work_item(
                    conn,
                    org_id,
                    fake.sentence(nb_words=4).rstrip("."),
                    day,
                    assigned_to=worker_id,
                    team_id=random.choice(team_ids) if random.random() < 0.3 else None,
                )
                counts["work_items"] += 1

    for worker_id in random.sample(worker_ids, k=min(2, len(worker_ids))):
        first = random.choice(days)
        insert_leave(
            conn,
            org_id,
            worker_id,
            first,
            first + timedelta(days=random.randint(0, 2)),
            status=random.choice(["approved", "approved", "pending"]),
            leave_type=random.choice(LEAVE_TYPES),
        )
        counts["leave"] += 1

    insert_holiday(conn, org_id, "Company Day", random.choice(days))
    conn.commit()
    return counts


def main():
    parser = argparse.ArgumentParser(description="Seed the crew calendar database with fake data")
    parser.add_argument("--org", type=int, default=1)
    parser.add_argument("--start", type=date.fromisoformat, default=date.today())
    parser.add_argument("--weeks", type=int, default=2)
    args = parser.parse_args()

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(DB_PATH)
    try:
        create_schema(conn)
        counts = seed(conn, args.org, args.start, args.weeks)
    finally:
        conn.close()

    print(f"Seeded organization {args.org} at {DB_PATH}")
    for name, count in counts.items():
        print(f"  {name}: {count}")


if __name__ == "__main__":
    main()
