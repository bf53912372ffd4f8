"""
Source record parsing and normalization into canonical calendar events.

Each source has exactly one normalizer, selected by its EventSource tag.
Normalizers are pure; a record that cannot be mapped raises MalformedRecord.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Any

from core.config import DEFAULT_TASK_DURATION_MINUTES, DEFAULT_TASK_START_TIME, EVENT_COLORS
from core.errors import MalformedRecord
from models.events import EVENT_ID_PREFIXES, SOURCE_EVENT_TYPES, Event, EventSource, as_naive_local
from models.records import (
    CalendarBlock,
    ExternalAdministrator,
    ExternalAssigneeKind,
    ExternalTask,
    ExternalTeam,
    LeaveRequest,
    PublicHoliday,
    WorkItem,
)
from services.identity import IdentityResolver

PRIVATE_BLOCK_TITLE = "Busy"


@dataclass
class NormalizationContext:
    """Lookups a normalizer may need to attach identity and display names."""

    identity: IdentityResolver
    admin_names: dict[int, str] = field(default_factory=dict)
    team_titles: dict[int, str] = field(default_factory=dict)


# =============================================================================
# EVENT IDS
# =============================================================================


def event_id(source: EventSource, record_id) -> str:
    return f"{EVENT_ID_PREFIXES[source]}{record_id}"


def source_for_event_id(value: str) -> EventSource:
    """Recover the originating source from an event id prefix."""
    # Longest prefix first so no prefix shadows a longer one
    for source, prefix in sorted(EVENT_ID_PREFIXES.items(), key=lambda item: -len(item[1])):
        if value.startswith(prefix):
            return source
    raise ValueError(f"Unknown event id prefix: '{value}'")


# =============================================================================
# NATIVE EXTERNAL RECORDS
# =============================================================================


def _optional_int(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number or None


def _parse_external_datetime(value: str) -> datetime | None:
    """Parse 'YYYY-MM-DD HH:MM[:SS]'. The zero date means unscheduled."""
    value = value.strip()
    if not value or value.startswith("0000-00-00"):
        return None
    return as_naive_local(datetime.fromisoformat(value))


def parse_member_ids(member_data: Any) -> list[int]:
    """Team member ids arrive as a list, a comma-separated string or a mapping."""
    if isinstance(member_data, str):
        items = member_data.split(",")
    elif isinstance(member_data, dict):
        items = list(member_data.values())
    elif isinstance(member_data, (list, tuple)):
        items = member_data
    else:
        return []

    ids = []
    for item in items:
        try:
            ids.append(int(str(item).strip()))
        except ValueError:
            continue
    return ids


def parse_external_task(raw: dict) -> ExternalTask:
    """
    Parse a native external task record.

    The schedule comes from 'scheduled_from', or from 'scheduled_date' plus
    'scheduled_time'. Tasks without a schedule parse with scheduled_start=None.
    """
    task_id = _optional_int(raw.get("id"))
    if task_id is None:
        raise MalformedRecord(EventSource.EXTERNAL_TASKS.value, raw.get("id"), "missing task id")

    try:
        if raw.get("scheduled_from"):
            start = _parse_external_datetime(str(raw["scheduled_from"]))
        elif raw.get("scheduled_date"):
            start_time = raw.get("scheduled_time") or DEFAULT_TASK_START_TIME
            start = _parse_external_datetime(f"{raw['scheduled_date']} {start_time}")
        else:
            start = None

        end = _parse_external_datetime(str(raw["scheduled_to"])) if raw.get("scheduled_to") else None
        if start and end and end > start:
            duration = int((end - start).total_seconds() // 60)
        elif raw.get("scheduled_duration_hours") or raw.get("scheduled_duration_minutes"):
            duration = int(raw.get("scheduled_duration_hours") or 0) * 60 + int(
                raw.get("scheduled_duration_minutes") or 0
            )
        else:
            duration = DEFAULT_TASK_DURATION_MINUTES
    except (TypeError, ValueError) as e:
        raise MalformedRecord(EventSource.EXTERNAL_TASKS.value, task_id, str(e))

    if duration <= 0:
        raise MalformedRecord(EventSource.EXTERNAL_TASKS.value, task_id, f"non-positive duration {duration}")

    assigned_to = str(raw.get("assigned_to") or "")
    assignee_kind = None
    assignee_id = None
    if assigned_to == ExternalAssigneeKind.TEAM.value:
        assignee_kind = ExternalAssigneeKind.TEAM
        assignee_id = _optional_int(raw.get("assignee"))
    elif assigned_to == ExternalAssigneeKind.ADMINISTRATOR.value:
        assignee_kind = ExternalAssigneeKind.ADMINISTRATOR
        assignee_id = _optional_int(raw.get("assignee"))
    else:
        # Older payloads put the admin id directly in assigned_to
        assignee_id = (
            _optional_int(assigned_to)
            or _optional_int(raw.get("assigned_admin_id"))
            or _optional_int(raw.get("assignee"))
        )
        if assignee_id is not None:
            assignee_kind = ExternalAssigneeKind.ADMINISTRATOR

    workflow_status_id = _optional_int(raw.get("workflow_status_id"))
    status = raw.get("status") or (str(workflow_status_id) if workflow_status_id else None)

    return ExternalTask(
        id=task_id,
        title=raw.get("title") or raw.get("description") or "External task",
        scheduled_start=start,
        duration_minutes=duration,
        assignee_kind=assignee_kind,
        assignee_id=assignee_id,
        status=status,
        project_id=_optional_int(raw.get("project_id")),
        customer_id=_optional_int(raw.get("customer_id")),
        location=raw.get("location") or None,
        workflow_status_id=workflow_status_id,
    )


def parse_external_team(raw: dict) -> ExternalTeam:
    team_id = _optional_int(raw.get("id"))
    if team_id is None:
        raise MalformedRecord("external_teams", raw.get("id"), "missing team id")
    return ExternalTeam(
        id=team_id,
        title=raw.get("title") or raw.get("name") or f"Team {team_id}",
        member_admin_ids=parse_member_ids(
            raw.get("admin_ids") or raw.get("members") or raw.get("member_ids") or []
        ),
        partner_id=_optional_int(raw.get("partner_id")),
        color=raw.get("color"),
    )


def parse_external_administrator(raw: dict) -> ExternalAdministrator:
    admin_id = _optional_int(raw.get("id"))
    if admin_id is None:
        raise MalformedRecord("external_administrators", raw.get("id"), "missing administrator id")
    return ExternalAdministrator(
        id=admin_id,
        name=raw.get("name") or raw.get("full_name") or raw.get("login") or f"Admin {admin_id}",
        login=raw.get("login") or "",
        email=raw.get("email") or "",
        is_active=raw.get("is_active") not in (False, 0, "0"),
    )


# =============================================================================
# NORMALIZERS
# =============================================================================


def _day_start(value) -> datetime:
    return datetime.combine(value, time.min)


def normalize_external_task(task: ExternalTask, context: NormalizationContext) -> Event:
    source = EventSource.EXTERNAL_TASKS
    if task.scheduled_start is None:
        raise MalformedRecord(source.value, task.id, "task is not scheduled")

    admin_id = task.admin_id
    worker_id = context.identity.map_external_admin_id_to_worker(admin_id)
    if task.team_id is not None:
        owner_name = context.team_titles.get(task.team_id) or f"Team {task.team_id}"
    elif admin_id is not None:
        owner_name = (
            context.identity.worker_name(worker_id)
            or context.admin_names.get(admin_id)
            or f"Admin {admin_id}"
        )
    else:
        owner_name = None

    return Event(
        id=event_id(source, task.id),
        title=task.title,
        start=task.scheduled_start,
        end=task.scheduled_end,
        all_day=False,
        type=SOURCE_EVENT_TYPES[source],
        color=EVENT_COLORS["external_task"],
        source=source,
        worker_id=worker_id,
        worker_name=owner_name,
        external_admin_id=admin_id,
        status=task.status,
        metadata={
            "projectId": task.project_id,
            "customerId": task.customer_id,
            "location": task.location,
            "workflowStatusId": task.workflow_status_id,
            "assigneeTeamId": task.team_id,
            "durationMinutes": task.duration_minutes,
        },
    )


def normalize_work_item(item: WorkItem, context: NormalizationContext) -> Event:
    source = EventSource.WORK_ITEMS
    if item.due_date is None:
        raise MalformedRecord(source.value, item.id, "work item has no due date")

    due = _day_start(item.due_date)
    return Event(
        id=event_id(source, item.id),
        title=item.title,
        start=due,
        end=due,
        all_day=True,
        type=SOURCE_EVENT_TYPES[source],
        color=EVENT_COLORS["work_item"],
        source=source,
        worker_id=item.assignee_id,
        worker_name=context.identity.worker_name(item.assignee_id),
        status=item.status,
        metadata={
            "workItemId": item.id,
            "teamId": item.team_id,
            "workItemType": item.work_item_type,
            "description": item.description,
        },
    )


def normalize_leave(request: LeaveRequest, context: NormalizationContext) -> Event:
    source = EventSource.LEAVE
    if request.end_date < request.start_date:
        raise MalformedRecord(source.value, request.id, "leave ends before it starts")

    worker_name = context.identity.worker_name(request.worker_id)
    return Event(
        id=event_id(source, request.id),
        title=f"{worker_name or 'Worker'} - {request.leave_type or 'Leave'}",
        start=_day_start(request.start_date),
        end=_day_start(request.end_date),
        all_day=True,
        type=SOURCE_EVENT_TYPES[source],
        color=EVENT_COLORS["leave"],
        source=source,
        worker_id=request.worker_id,
        worker_name=worker_name,
        external_admin_id=context.identity.external_admin_id_for(request.worker_id),
        status=request.status.value,
        metadata={
            "leaveType": request.leave_type,
            "daysCount": request.days_count,
            "notes": request.notes,
        },
    )


def normalize_public_holiday(holiday: PublicHoliday, context: NormalizationContext) -> Event:
    source = EventSource.PUBLIC_HOLIDAYS
    day = _day_start(holiday.date)
    return Event(
        id=event_id(source, holiday.id),
        title=holiday.name,
        start=day,
        end=day,
        all_day=True,
        type=SOURCE_EVENT_TYPES[source],
        color=EVENT_COLORS["public_holiday"],
        source=source,
        metadata={"region": holiday.region, "country": holiday.country},
    )


def normalize_block(block: CalendarBlock, context: NormalizationContext) -> Event:
    source = EventSource.BLOCKS
    if block.end < block.start:
        raise MalformedRecord(source.value, block.id, "block ends before it starts")

    return Event(
        id=event_id(source, block.id),
        title=PRIVATE_BLOCK_TITLE if block.is_private else (block.title or block.block_type),
        start=block.start,
        end=block.end,
        all_day=block.is_all_day,
        type=SOURCE_EVENT_TYPES[source],
        color=EVENT_COLORS["block"],
        source=source,
        worker_id=block.worker_id,
        worker_name=context.identity.worker_name(block.worker_id),
        external_admin_id=context.identity.external_admin_id_for(block.worker_id),
        metadata={
            "blockType": block.block_type,
            "isRecurring": block.is_recurring,
            "recurrenceRule": block.recurrence_rule,
            "recurrenceUnexpanded": bool(block.is_recurring or block.recurrence_rule),
            "blocksAvailability": block.blocks_availability,
            "isPrivate": block.is_private,
            "description": None if block.is_private else block.description,
        },
    )


NORMALIZERS: dict[EventSource, Callable[[Any, NormalizationContext], Event]] = {
    EventSource.EXTERNAL_TASKS: normalize_external_task,
    EventSource.WORK_ITEMS: normalize_work_item,
    EventSource.LEAVE: normalize_leave,
    EventSource.PUBLIC_HOLIDAYS: normalize_public_holiday,
    EventSource.BLOCKS: normalize_block,
}
