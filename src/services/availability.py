"""
Free-slot computation for individual workers and teams.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta

from core.config import SLOT_GRANULARITY_MINUTES
from core.errors import NotFound
from models.events import BusyInterval, DateRange, EventSource, Slot, WorkingHours, as_naive_local
from models.records import CalendarBlock, LeaveStatus
from services.calendar import fetch_external_tasks
from services.identity import IdentityResolver
from services.ports import CalendarRepository, SchedulingClient, WorkforceDirectory

logger = logging.getLogger(__name__)


@dataclass
class TeamAvailability:
    slots: list[Slot]
    per_member: dict[int, list[Slot]]

    def to_dict(self) -> dict:
        return {
            "slots": [s.to_dict() for s in self.slots],
            "perMember": {str(member): [s.to_dict() for s in slots] for member, slots in self.per_member.items()},
        }


# =============================================================================
# SLOT GENERATION
# =============================================================================


def format_time_display(value: datetime) -> str:
    """Format time as 'H:MM AM' (platform-safe, no zero-padding, e.g., '9:30 AM')."""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_date_display(value: date) -> str:
    """Format date as 'Ddd, Mon D' (e.g., 'Mon, Feb 10')."""
    return f"{value.strftime('%a')}, {value.strftime('%b')} {value.day}"


def _first_candidate(day: date, start: time, granularity: int) -> datetime:
    """Working-hours start rounded up to the slot grid."""
    minutes = start.hour * 60 + start.minute
    if start.second or start.microsecond:
        minutes += 1
    aligned = -(-minutes // granularity) * granularity
    return datetime.combine(day, time.min) + timedelta(minutes=aligned)


def iter_slots(
    date_range: DateRange,
    duration_minutes: int,
    travel_minutes: int,
    working_hours: WorkingHours,
    busy_intervals: Iterable[BusyInterval],
    now: datetime | None = None,
    granularity: int = SLOT_GRANULARITY_MINUTES,
) -> Iterator[Slot]:
    """
    Yield free candidate slots in chronological order.

    A candidate occupies duration plus travel before and after. It is kept
    when it ends within working hours, overlaps no busy interval and starts
    after now. Weekends are skipped. Calling again restarts from the first day.
    """
    total = timedelta(minutes=duration_minutes + 2 * travel_minutes)
    step = timedelta(minutes=granularity)
    busy = list(busy_intervals)
    now = now or datetime.now()

    for day in date_range.days():
        if day.weekday() >= 5:
            continue
        day_end = datetime.combine(day, working_hours.end)
        candidate = _first_candidate(day, working_hours.start, granularity)
        while candidate < day_end:
            candidate_end = candidate + total
            if (
                candidate_end <= day_end
                and candidate > now
                and not any(b.overlaps(candidate, candidate_end) for b in busy)
            ):
                yield Slot(
                    start=candidate,
                    end=candidate_end,
                    display_time=format_time_display(candidate),
                    display_date=format_date_display(day),
                )
            candidate += step


def generate_slots(
    date_range: DateRange,
    duration_minutes: int,
    travel_minutes: int,
    working_hours: WorkingHours,
    busy_intervals: Iterable[BusyInterval],
    now: datetime | None = None,
) -> list[Slot]:
    return list(iter_slots(date_range, duration_minutes, travel_minutes, working_hours, busy_intervals, now))


def merge_team_availability(per_member: dict[int, list[Slot]]) -> TeamAvailability:
    """
    Union member slots into team slots.

    A team slot is any instant at which at least one member is free, annotated
    with the members free at that instant.
    """
    by_member = {member: {s.start: s for s in slots} for member, slots in per_member.items()}
    instants = sorted({start for starts in by_member.values() for start in starts})

    merged = []
    for instant in instants:
        free = tuple(sorted(member for member, starts in by_member.items() if instant in starts))
        if not free:
            continue
        merged.append(replace(by_member[free[0]][instant], free_members=free))
    return TeamAvailability(slots=merged, per_member=per_member)


# =============================================================================
# BUSY INTERVALS
# =============================================================================


def _whole_days(start_day: date, end_day: date) -> tuple[datetime, datetime]:
    return datetime.combine(start_day, time.min), datetime.combine(end_day + timedelta(days=1), time.min)


def block_interval(block: CalendarBlock) -> BusyInterval:
    if block.is_all_day:
        start, end = _whole_days(block.start.date(), block.end.date())
    else:
        start, end = as_naive_local(block.start), as_naive_local(block.end)
    return BusyInterval(start=start, end=end, source=EventSource.BLOCKS)


class AvailabilityService:
    """
    Computes bookable slots from every busy source of a worker or team.

    A busy source that cannot be read counts as having no commitments, so
    slot queries never fail because of one source.
    """

    def __init__(
        self,
        organization_id: int,
        directory: WorkforceDirectory,
        repository: CalendarRepository,
        client: SchedulingClient | None = None,
    ):
        self.organization_id = organization_id
        self.directory = directory
        self.repository = repository
        self.client = client

    def availability_for_worker(
        self,
        worker_id: int,
        date_range: DateRange,
        duration_minutes: int,
        travel_minutes: int,
        working_hours: WorkingHours,
        now: datetime | None = None,
    ) -> list[Slot]:
        identity = IdentityResolver.load(self.directory, self.organization_id)
        if worker_id not in identity.workers:
            raise NotFound(f"Worker {worker_id} not found")

        busy = self.collect_busy_intervals([worker_id], date_range, identity)
        slots = generate_slots(date_range, duration_minutes, travel_minutes, working_hours, busy[worker_id], now)
        logger.info("Generated %d slots for worker %s", len(slots), worker_id)
        return slots

    def availability_for_team(
        self,
        team_id: int,
        date_range: DateRange,
        duration_minutes: int,
        travel_minutes: int,
        working_hours: WorkingHours,
        now: datetime | None = None,
    ) -> TeamAvailability:
        if team_id not in {t.id for t in self.directory.list_teams(self.organization_id)}:
            raise NotFound(f"Team {team_id} not found")

        identity = IdentityResolver.load(self.directory, self.organization_id)
        members = sorted(identity.team_member_ids(team_id))
        busy = self.collect_busy_intervals(members, date_range, identity)

        per_member = {
            member: generate_slots(date_range, duration_minutes, travel_minutes, working_hours, busy[member], now)
            for member in members
        }
        result = merge_team_availability(per_member)
        logger.info("Generated %d team slots for team %s (%d members)", len(result.slots), team_id, len(members))
        return result

    def collect_busy_intervals(
        self, worker_ids: list[int], date_range: DateRange, identity: IdentityResolver
    ) -> dict[int, list[BusyInterval]]:
        """Busy intervals per worker from external tasks, approved leave, holidays and blocks."""
        busy: dict[int, list[BusyInterval]] = defaultdict(list)
        collectors = [
            (EventSource.EXTERNAL_TASKS, self._external_task_busy),
            (EventSource.LEAVE, self._leave_busy),
            (EventSource.PUBLIC_HOLIDAYS, self._holiday_busy),
            (EventSource.BLOCKS, self._block_busy),
        ]
        for source, collector in collectors:
            try:
                for worker_id, interval in collector(worker_ids, date_range, identity):
                    busy[worker_id].append(interval)
            except Exception as e:
                logger.warning("Busy source %s unavailable, treating as free: %s", source.value, e)

        return {worker_id: busy[worker_id] for worker_id in worker_ids}

    def _external_task_busy(self, worker_ids, date_range, identity):
        admin_to_worker = {}
        for worker_id in worker_ids:
            admin_id = identity.external_admin_id_for(worker_id)
            if admin_id is not None:
                admin_to_worker[admin_id] = worker_id
        # Workers without a mapping have no external commitments
        if not admin_to_worker or self.client is None:
            return []

        tasks, _ = fetch_external_tasks(self.client, date_range, set(admin_to_worker))
        return [
            (
                admin_to_worker[task.admin_id],
                BusyInterval(task.scheduled_start, task.scheduled_end, EventSource.EXTERNAL_TASKS),
            )
            for task in tasks
        ]

    def _leave_busy(self, worker_ids, date_range, identity):
        requests = self.repository.list_approved_leave(self.organization_id, date_range, worker_ids)
        return [
            (r.worker_id, BusyInterval(*_whole_days(r.start_date, r.end_date), EventSource.LEAVE))
            for r in requests
            if r.status == LeaveStatus.APPROVED
        ]

    def _holiday_busy(self, worker_ids, date_range, identity):
        pairs = []
        for holiday in self.repository.list_public_holidays(self.organization_id, date_range):
            interval = BusyInterval(*_whole_days(holiday.date, holiday.date), EventSource.PUBLIC_HOLIDAYS)
            pairs.extend((worker_id, interval) for worker_id in worker_ids)
        return pairs

    def _block_busy(self, worker_ids, date_range, identity):
        return [
            (block.worker_id, block_interval(block))
            for block in self.repository.list_blocks(self.organization_id, date_range, worker_ids)
            if block.blocks_availability
        ]
