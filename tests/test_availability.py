"""Tests for slot generation and team availability."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from conftest import FakeDirectory, FakeRepository, FakeSchedulingClient, external_task
from core.errors import NotFound
from models.events import BusyInterval, DateRange, EventSource, WorkingHours
from models.records import CalendarBlock, LeaveRequest, LeaveStatus, Team, TeamMembership, Worker
from services.availability import (
    AvailabilityService,
    block_interval,
    format_date_display,
    format_time_display,
    generate_slots,
    iter_slots,
    merge_team_availability,
)

NINE_TO_FIVE = WorkingHours(start=time(9, 0), end=time(17, 0))
PAST = datetime(2025, 1, 1)
MONDAY = DateRange(start=date(2025, 2, 10), end=date(2025, 2, 10))


def starts(slots):
    return [s.start.strftime("%H:%M") for s in slots]


def on_day(slots, day):
    return [s for s in slots if s.start.date() == day]


# =============================================================================
# SLOT GENERATION
# =============================================================================


def test_busy_morning_excludes_overlapping_candidates():
    busy = [BusyInterval(datetime(2025, 2, 10, 9, 0), datetime(2025, 2, 10, 10, 30))]
    slots = generate_slots(MONDAY, 60, 0, NINE_TO_FIVE, busy, now=PAST)

    assert starts(slots) == [
        "10:30", "11:00", "11:30", "12:00", "12:30", "13:00",
        "13:30", "14:00", "14:30", "15:00", "15:30", "16:00",
    ]


def test_free_day_last_slot_ends_at_close():
    slots = generate_slots(MONDAY, 60, 0, NINE_TO_FIVE, [], now=PAST)
    assert len(slots) == 15
    assert slots[0].start == datetime(2025, 2, 10, 9, 0)
    assert slots[-1].end == datetime(2025, 2, 10, 17, 0)


def test_travel_time_pads_both_sides():
    slots = generate_slots(MONDAY, 60, 15, NINE_TO_FIVE, [], now=PAST)
    assert slots[0].end == datetime(2025, 2, 10, 10, 30)
    assert slots[-1].start == datetime(2025, 2, 10, 15, 30)


def test_travel_time_counts_against_busy_intervals():
    busy = [BusyInterval(datetime(2025, 2, 10, 11, 0), datetime(2025, 2, 10, 12, 0))]
    slots = generate_slots(MONDAY, 60, 30, NINE_TO_FIVE, busy, now=PAST)
    # 9:00 + 2h occupies until 11:00 and only touches the busy interval
    assert "09:00" in starts(slots)
    assert "09:30" not in starts(slots)
    assert "12:00" in starts(slots)


def test_weekends_are_skipped():
    weekend = DateRange(start=date(2025, 2, 15), end=date(2025, 2, 16))
    assert generate_slots(weekend, 30, 0, NINE_TO_FIVE, [], now=PAST) == []


def test_slots_start_after_now():
    now = datetime(2025, 2, 10, 12, 0)
    slots = generate_slots(MONDAY, 60, 0, NINE_TO_FIVE, [], now=now)
    assert starts(slots)[0] == "12:30"


def test_duration_longer_than_working_day_yields_nothing():
    assert generate_slots(MONDAY, 9 * 60, 0, NINE_TO_FIVE, [], now=PAST) == []


def test_candidates_align_to_slot_grid():
    hours = WorkingHours(start=time(9, 15), end=time(12, 0))
    slots = generate_slots(MONDAY, 60, 0, hours, [], now=PAST)
    assert starts(slots) == ["09:30", "10:00", "10:30", "11:00"]


def test_iter_slots_restarts_from_first_day(feb_week):
    first = list(iter_slots(feb_week, 60, 0, NINE_TO_FIVE, [], now=PAST))
    second = list(iter_slots(feb_week, 60, 0, NINE_TO_FIVE, [], now=PAST))
    assert first == second
    assert len(first) == 5 * 15


def test_slots_are_weekday_working_hours_and_free(feb_week):
    busy = [
        BusyInterval(datetime(2025, 2, 11, 10, 0), datetime(2025, 2, 11, 13, 45)),
        BusyInterval(datetime(2025, 2, 13, 0, 0), datetime(2025, 2, 14, 0, 0)),
    ]
    wide = DateRange(start=date(2025, 2, 8), end=date(2025, 2, 16))
    slots = generate_slots(wide, 45, 10, NINE_TO_FIVE, busy, now=PAST)

    assert slots
    assert [s.start for s in slots] == sorted(s.start for s in slots)
    for slot in slots:
        assert slot.start.weekday() < 5
        assert slot.start.time() >= NINE_TO_FIVE.start
        assert slot.end <= datetime.combine(slot.start.date(), NINE_TO_FIVE.end)
        assert slot.end - slot.start == timedelta(minutes=65)
        assert not any(b.overlaps(slot.start, slot.end) for b in busy)
    assert not on_day(slots, date(2025, 2, 13))


def test_display_formatting():
    assert format_time_display(datetime(2025, 2, 10, 9, 30)) == "9:30 AM"
    assert format_time_display(datetime(2025, 2, 10, 12, 0)) == "12:00 PM"
    assert format_time_display(datetime(2025, 2, 10, 13, 0)) == "1:00 PM"
    assert format_date_display(date(2025, 2, 10)) == "Mon, Feb 10"


def test_slot_serialization():
    slot = generate_slots(MONDAY, 30, 0, NINE_TO_FIVE, [], now=PAST)[0]
    assert slot.to_dict() == {
        "datetime": "2025-02-10T09:00:00",
        "end": "2025-02-10T09:30:00",
        "displayTime": "9:00 AM",
        "displayDate": "Mon, Feb 10",
    }


def test_all_day_block_covers_whole_days():
    block = CalendarBlock(
        id=1, worker_id=1, title="Offsite", block_type="training",
        start=datetime(2025, 2, 10, 0, 0), end=datetime(2025, 2, 11, 0, 0), is_all_day=True,
    )
    interval = block_interval(block)
    assert interval.start == datetime(2025, 2, 10)
    assert interval.end == datetime(2025, 2, 12)
    assert interval.source == EventSource.BLOCKS


# =============================================================================
# TEAM MERGE
# =============================================================================


def test_merge_single_member_equals_member_slots():
    slots = generate_slots(MONDAY, 60, 0, NINE_TO_FIVE, [], now=PAST)
    merged = merge_team_availability({1: slots})
    assert [s.start for s in merged.slots] == [s.start for s in slots]
    assert all(s.free_members == (1,) for s in merged.slots)


def test_merge_lists_free_members_per_instant():
    a_busy = [BusyInterval(datetime(2025, 2, 10, 10, 0), datetime(2025, 2, 10, 11, 0))]
    per_member = {
        1: generate_slots(MONDAY, 60, 0, NINE_TO_FIVE, a_busy, now=PAST),
        2: generate_slots(MONDAY, 60, 0, NINE_TO_FIVE, [], now=PAST),
    }
    merged = merge_team_availability(per_member)

    by_start = {s.start.strftime("%H:%M"): s for s in merged.slots}
    assert by_start["10:00"].free_members == (2,)
    assert by_start["09:30"].free_members == (2,)
    assert by_start["11:00"].free_members == (1, 2)
    assert len(merged.slots) == 15
    assert merged.to_dict()["perMember"].keys() == {"1", "2"}


def test_merge_with_no_members():
    assert merge_team_availability({}).slots == []


# =============================================================================
# AVAILABILITY SERVICE
# =============================================================================


@pytest.fixture
def service(directory, repository, scheduling_client):
    return AvailabilityService(1, directory, repository, scheduling_client)


def test_worker_slots_respect_every_busy_source(service, feb_week):
    slots = service.availability_for_worker(1, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)

    monday = starts(on_day(slots, date(2025, 2, 10)))
    assert "10:00" not in monday and "11:00" not in monday and "09:00" in monday and "12:00" in monday
    tuesday = starts(on_day(slots, date(2025, 2, 11)))
    assert "13:00" not in tuesday and "12:30" not in tuesday and "14:00" in tuesday
    # Public holiday blocks everyone
    assert on_day(slots, date(2025, 2, 14)) == []


def test_pending_leave_does_not_block(service, feb_week):
    slots = service.availability_for_worker(1, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)
    # Alice's pending leave on Thursday leaves the day open
    assert len(on_day(slots, date(2025, 2, 13))) == 15


def test_team_assigned_task_does_not_block_members(service, feb_week):
    slots = service.availability_for_worker(1, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)
    assert "11:00" in starts(on_day(slots, date(2025, 2, 13)))


def test_approved_versus_pending_leave_on_same_day(directory):
    day = DateRange(start=date(2025, 2, 10), end=date(2025, 2, 10))

    def slots_with(status):
        repository = FakeRepository(
            leave=[LeaveRequest(id=1, worker_id=3, start_date=date(2025, 2, 10), end_date=date(2025, 2, 10),
                                status=status)]
        )
        service = AvailabilityService(1, directory, repository)
        return service.availability_for_worker(3, day, 60, 0, NINE_TO_FIVE, now=PAST)

    assert slots_with(LeaveStatus.APPROVED) == []
    assert len(slots_with(LeaveStatus.PENDING)) == 15


def test_unreadable_source_is_treated_as_free(service, scheduling_client, feb_week):
    scheduling_client.fail_tasks = True
    slots = service.availability_for_worker(1, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)
    assert len(on_day(slots, date(2025, 2, 10))) == 15


def test_unmapped_worker_skips_external_system(service, scheduling_client, feb_week):
    service.availability_for_worker(3, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)
    assert scheduling_client.task_filters == []


def test_unknown_worker_raises_not_found(service, feb_week):
    with pytest.raises(NotFound):
        service.availability_for_worker(404, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)


def test_unknown_team_raises_not_found(service, feb_week):
    with pytest.raises(NotFound):
        service.availability_for_team(404, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)


def test_team_slots_list_free_members(service, feb_week):
    result = service.availability_for_team(10, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)

    assert set(result.per_member) == {1, 2}
    wednesday = on_day(result.slots, date(2025, 2, 12))
    # Bob is on approved leave on Wednesday
    assert wednesday and all(s.free_members == (1,) for s in wednesday)
    assert on_day(result.slots, date(2025, 2, 14)) == []


def test_team_a_busy_leaves_b_free():
    directory = FakeDirectory(
        workers=[Worker(id=1, name="A", email="a@example.com"), Worker(id=2, name="B", email="b@example.com")],
        teams=[Team(id=1, name="AB")],
        memberships=[TeamMembership(team_id=1, worker_id=1), TeamMembership(team_id=1, worker_id=2)],
    )
    repository = FakeRepository(
        blocks=[CalendarBlock(id=1, worker_id=1, title="Job", block_type="work",
                              start=datetime(2025, 2, 10, 10, 0), end=datetime(2025, 2, 10, 11, 0))]
    )
    result = AvailabilityService(1, directory, repository).availability_for_team(
        1, MONDAY, 60, 0, NINE_TO_FIVE, now=PAST
    )
    ten = next(s for s in result.slots if s.start == datetime(2025, 2, 10, 10, 0))
    assert ten.free_members == (2,)


def test_team_with_no_members_has_no_slots(service, feb_week):
    result = service.availability_for_team(20, feb_week, 60, 0, NINE_TO_FIVE, now=PAST)
    assert result.slots == []
    assert result.per_member == {}


def test_non_blocking_block_is_ignored(directory, feb_week):
    repository = FakeRepository(
        blocks=[CalendarBlock(id=1, worker_id=3, title="Tentative", block_type="hold",
                              start=datetime(2025, 2, 10, 9), end=datetime(2025, 2, 10, 17),
                              blocks_availability=False)]
    )
    slots = AvailabilityService(1, directory, repository).availability_for_worker(
        3, MONDAY, 60, 0, NINE_TO_FIVE, now=PAST
    )
    assert len(slots) == 15


def test_offset_timestamps_do_not_fail_slot_queries(directory):
    repository = FakeRepository(
        blocks=[CalendarBlock(id=1, worker_id=1, title="Aware", block_type="work",
                              start=datetime(2025, 2, 10, 14, tzinfo=timezone.utc),
                              end=datetime(2025, 2, 10, 15, tzinfo=timezone.utc))]
    )
    client = FakeSchedulingClient(tasks=[external_task(2, 101, "2025-02-10 09:00:00+02:00")])
    service = AvailabilityService(1, directory, repository, client)

    slots = service.availability_for_worker(1, MONDAY, 60, 0, NINE_TO_FIVE, now=PAST)

    block_start = datetime(2025, 2, 10, 14, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    task_start = datetime(2025, 2, 10, 7, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    busy = [
        BusyInterval(block_start, block_start + timedelta(hours=1)),
        BusyInterval(task_start, task_start + timedelta(hours=1)),
    ]
    assert slots == generate_slots(MONDAY, 60, 0, NINE_TO_FIVE, busy, now=PAST)
