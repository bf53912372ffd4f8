"""
Combined calendar aggregation across local sources and the external scheduling system.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from core.errors import MalformedRecord, SourceUnavailable
from models.events import DateRange, Event, EventSource
from models.records import ExternalTask, ExternalTeam, LeaveStatus
from services.directory_cache import ExternalDirectoryCache
from services.identity import IdentityResolver
from services.normalizer import NORMALIZERS, NormalizationContext, parse_external_task
from services.ports import CalendarRepository, SchedulingClient, WorkforceDirectory

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "External scheduling system is not configured"


@dataclass
class CalendarFilters:
    worker_ids: list[int] = field(default_factory=list)
    team_ids: list[int] = field(default_factory=list)
    external_admin_ids: list[int] = field(default_factory=list)
    external_team_ids: list[int] = field(default_factory=list)

    @property
    def has_local_filter(self) -> bool:
        return bool(self.worker_ids or self.team_ids)

    @property
    def has_identity_filter(self) -> bool:
        return bool(self.has_local_filter or self.external_admin_ids or self.external_team_ids)

    def to_dict(self) -> dict[str, list[int]]:
        return {
            "workerIds": self.worker_ids,
            "teamIds": self.team_ids,
            "externalAdminIds": self.external_admin_ids,
            "externalTeamIds": self.external_team_ids,
        }


@dataclass
class SourceToggles:
    blocks: bool = True
    leave: bool = True
    public_holidays: bool = True
    work_items: bool = True
    external_tasks: bool = True

    def enabled(self) -> list[EventSource]:
        """Enabled sources in fetch order."""
        order = [
            (EventSource.BLOCKS, self.blocks),
            (EventSource.LEAVE, self.leave),
            (EventSource.PUBLIC_HOLIDAYS, self.public_holidays),
            (EventSource.WORK_ITEMS, self.work_items),
            (EventSource.EXTERNAL_TASKS, self.external_tasks),
        ]
        return [source for source, on in order if on]


@dataclass
class CombinedResult:
    events: list[Event]
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"events": [e.to_dict() for e in self.events], "metadata": self.metadata}


def load_external_directory(
    organization_id: int,
    client: SchedulingClient,
    cache: ExternalDirectoryCache | None,
) -> tuple[list[ExternalTeam], dict[int, str]]:
    """External teams and admin display names; an unreachable directory yields empties."""
    cache = cache or ExternalDirectoryCache(ttl_seconds=0)
    try:
        teams = cache.teams(organization_id, client)
    except Exception as e:
        logger.warning("External teams unavailable: %s", e)
        teams = []
    try:
        admin_names = {a.id: a.name for a in cache.administrators(organization_id, client)}
    except Exception as e:
        logger.warning("External administrators unavailable: %s", e)
        admin_names = {}
    return teams, admin_names


def fetch_external_tasks(
    client: SchedulingClient,
    date_range: DateRange,
    admin_ids: set[int] | None,
    external_teams: Iterable[ExternalTeam] = (),
) -> tuple[list[ExternalTask], int]:
    """
    Fetch external tasks scheduled within the range.

    The external listing cannot be trusted to filter by date, so every task's
    scheduled day is compared against the range here. admin_ids=None means
    unfiltered; otherwise a task matches when assigned to one of the admins,
    or to an external team with one of them as a member.

    Returns:
        Tuple of (tasks, malformed or duplicate record count)
    """
    filters: dict[str, Any] = {}
    if admin_ids is not None and len(admin_ids) == 1:
        filters["assigned_admin_id"] = next(iter(admin_ids))

    try:
        raw_tasks = client.list_tasks(filters)
    except SourceUnavailable:
        raise
    except Exception as e:
        raise SourceUnavailable(EventSource.EXTERNAL_TASKS.value, e) from e

    team_members = {t.id: set(t.member_admin_ids) for t in external_teams}
    tasks = []
    seen: set[int] = set()
    skipped = 0
    for raw in raw_tasks:
        try:
            task = parse_external_task(raw)
        except MalformedRecord as e:
            logger.debug("Skipping malformed external task: %s", e)
            skipped += 1
            continue

        # Offset paging can return a record twice when the listing shifts between pages
        if task.id in seen:
            logger.debug("Skipping duplicate external task %s", task.id)
            skipped += 1
            continue
        seen.add(task.id)

        if task.scheduled_start is None or not date_range.contains_day(task.scheduled_start.date()):
            continue
        if admin_ids is not None:
            if task.team_id is not None:
                if not team_members.get(task.team_id, set()) & admin_ids:
                    continue
            elif task.admin_id not in admin_ids:
                continue
        tasks.append(task)

    logger.info(
        "Kept %d of %d external tasks for %s to %s", len(tasks), len(raw_tasks), date_range.start, date_range.end
    )
    return tasks, skipped


def clip_to_range(event: Event, date_range: DateRange) -> Event | None:
    """Clamp an event to the request window; events entirely outside it are dropped."""
    lo, hi = date_range.start_datetime, date_range.end_datetime
    if event.end < lo or event.start > hi:
        return None
    if event.start >= lo and event.end <= hi:
        return event

    event.metadata["originalStart"] = event.start.isoformat()
    event.metadata["originalEnd"] = event.end.isoformat()
    event.start = max(event.start, lo)
    event.end = min(event.end, hi)
    return event


class CalendarAggregator:
    """
    Builds the combined calendar view for one organization.

    Each source is fetched and normalized independently; a failing source is
    reported in metadata["errors"] and never fails the whole call.
    """

    def __init__(
        self,
        organization_id: int,
        directory: WorkforceDirectory,
        repository: CalendarRepository,
        client: SchedulingClient | None = None,
        directory_cache: ExternalDirectoryCache | None = None,
    ):
        self.organization_id = organization_id
        self.directory = directory
        self.repository = repository
        self.client = client
        self.directory_cache = directory_cache

    def aggregate(
        self,
        date_range: DateRange,
        filters: CalendarFilters | None = None,
        toggles: SourceToggles | None = None,
    ) -> CombinedResult:
        filters = filters or CalendarFilters()
        toggles = toggles or SourceToggles()
        sources = toggles.enabled()

        identity = IdentityResolver.load(self.directory, self.organization_id)
        effective_worker_ids = None
        if filters.has_local_filter:
            effective_worker_ids = identity.resolve_effective_worker_ids(filters.worker_ids, filters.team_ids)

        metadata: dict[str, Any] = {
            "range": {"startDate": date_range.start.isoformat(), "endDate": date_range.end.isoformat()},
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "counts": {source.value: 0 for source in sources},
            "skipped": {source.value: 0 for source in sources},
            "errors": {},
            "filtersApplied": filters.to_dict(),
        }
        if effective_worker_ids is not None:
            metadata["effectiveWorkerIds"] = sorted(effective_worker_ids)

        context = NormalizationContext(identity=identity)
        events: list[Event] = []

        for source in sources:
            try:
                records, skipped = self._fetch(source, date_range, filters, effective_worker_ids, identity, context)
            except Exception as e:
                logger.warning("Calendar source %s unavailable: %s", source.value, e)
                metadata["errors"][source.value] = str(e.cause if isinstance(e, SourceUnavailable) else e)
                continue

            emitted = 0
            for record in records:
                try:
                    event = clip_to_range(NORMALIZERS[source](record, context), date_range)
                except MalformedRecord as e:
                    logger.debug("Skipping malformed record: %s", e)
                    skipped += 1
                    continue
                except Exception as e:
                    logger.warning(
                        "Skipping %s record that could not be placed on the calendar: %s", source.value, e
                    )
                    skipped += 1
                    continue
                if event is not None:
                    events.append(event)
                    emitted += 1

            metadata["counts"][source.value] = emitted
            metadata["skipped"][source.value] = skipped
            if source == EventSource.EXTERNAL_TASKS:
                metadata["externalLastSync"] = datetime.now(timezone.utc).isoformat()

        events.sort(key=lambda e: (e.start, e.id))
        metadata["totalEvents"] = len(events)
        logger.info(
            "Combined calendar %s to %s: %d events, %d source errors",
            date_range.start,
            date_range.end,
            len(events),
            len(metadata["errors"]),
        )
        return CombinedResult(events=events, metadata=metadata)

    def _fetch(
        self,
        source: EventSource,
        date_range: DateRange,
        filters: CalendarFilters,
        worker_ids: set[int] | None,
        identity: IdentityResolver,
        context: NormalizationContext,
    ) -> tuple[list, int]:
        org = self.organization_id
        if source == EventSource.BLOCKS:
            return self.repository.list_blocks(org, date_range, worker_ids), 0
        if source == EventSource.LEAVE:
            requests = self.repository.list_approved_leave(org, date_range, worker_ids)
            return [r for r in requests if r.status == LeaveStatus.APPROVED], 0
        if source == EventSource.PUBLIC_HOLIDAYS:
            return self.repository.list_public_holidays(org, date_range), 0
        if source == EventSource.WORK_ITEMS:
            team_ids = filters.team_ids or None
            return self.repository.list_work_items(org, date_range, worker_ids, team_ids), 0
        return self._fetch_external(date_range, filters, worker_ids, identity, context)

    def _fetch_external(
        self,
        date_range: DateRange,
        filters: CalendarFilters,
        worker_ids: set[int] | None,
        identity: IdentityResolver,
        context: NormalizationContext,
    ) -> tuple[list[ExternalTask], int]:
        if self.client is None:
            raise SourceUnavailable(EventSource.EXTERNAL_TASKS.value, RuntimeError(NOT_CONFIGURED))

        teams, admin_names = load_external_directory(self.organization_id, self.client, self.directory_cache)
        identity.add_external_teams(teams)
        context.admin_names = admin_names
        context.team_titles = {t.id: t.title for t in teams}

        admin_ids = None
        if filters.has_identity_filter:
            admin_ids = identity.resolve_external_admin_ids(
                worker_ids or (), filters.external_admin_ids, filters.external_team_ids
            )
            if not admin_ids:
                # Filters resolved to nobody in the external system; never fall back to all tasks
                logger.info("Identity filters map to no external admin ids; skipping external tasks")
                return [], 0

        return fetch_external_tasks(self.client, date_range, admin_ids, teams)
