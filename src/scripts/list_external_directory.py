#!/usr/bin/env python3
"""
List local workers next to the external scheduling system's administrators
and teams, and report workers without an external mapping.

Usage:
    uv run python src/scripts/list_external_directory.py --org 1
"""

import argparse
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import DB_PATH
from core.database import SqliteCalendarStore, get_connection
from core.errors import SourceUnavailable
from core.scheduling_client import get_scheduling_client
from services.directory_cache import ExternalDirectoryCache


def main():
    parser = argparse.ArgumentParser(description="Compare local workers with the external directory")
    parser.add_argument("--org", type=int, required=True, help="Organization id")
    args = parser.parse_args()

    conn = get_connection(DB_PATH)
    store = SqliteCalendarStore(conn)
    try:
        workers = store.list_workers_in_org(args.org)
    finally:
        conn.close()

    print(f"Found {len(workers)} workers in organization {args.org}\n")
    print("=" * 80)
    for worker in workers:
        mapping = worker.external_admin_id if worker.external_admin_id is not None else "-"
        print(f"{worker.id:>6}  {worker.display_name:<40} external admin: {mapping}")

    client = get_scheduling_client()
    if client is None:
        print("\nExternal scheduling system is not configured (SCHEDULING_BASE_URL / SCHEDULING_AUTH_HEADER)")
        return

    cache = ExternalDirectoryCache()
    try:
        admins = cache.administrators(args.org, client)
        teams = cache.teams(args.org, client)
    except SourceUnavailable as e:
        print(f"\nError fetching external directory: {e}")
        sys.exit(1)
    finally:
        client.close()

    print(f"\nExternal administrators ({len(admins)}):")
    print("-" * 80)
    for admin in admins:
        status = "" if admin.is_active else " (inactive)"
        print(f"{admin.id:>6}  {admin.name:<40} {admin.email}{status}")

    print(f"\nExternal teams ({len(teams)}):")
    print("-" * 80)
    for team in teams:
        members = ", ".join(str(m) for m in team.member_admin_ids) or "none"
        print(f"{team.id:>6}  {team.title:<40} members: {members}")

    known_admins = {a.id for a in admins}
    unmapped = [w for w in workers if w.external_admin_id is None and w.is_active]
    dangling = [w for w in workers if w.external_admin_id is not None and w.external_admin_id not in known_admins]

    print("\nMapping gaps:")
    print("-" * 80)
    for worker in unmapped:
        print(f"  worker {worker.id} ({worker.display_name}) has no external admin id")
    for worker in dangling:
        print(f"  worker {worker.id} maps to unknown external admin {worker.external_admin_id}")
    if not unmapped and not dangling:
        print("  none")

    print("\nDone!")


if __name__ == "__main__":
    main()
