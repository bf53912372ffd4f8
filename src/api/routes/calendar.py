"""Combined calendar and availability endpoints."""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from api.dependencies import (
    get_client,
    get_directory_cache,
    get_organization_id,
    get_store,
    verify_api_key,
)
from api.logging import RequestLog, log_request
from api.models.responses import (
    CombinedCalendarResponse,
    ErrorCodes,
    FiltersResponse,
    SlotsResponse,
    TeamAvailabilityResponse,
)
from core.config import DEFAULT_DURATION
from core.database import SqliteCalendarStore
from core.errors import ConfigurationError, NotFound
from core.validation import (
    default_working_hours,
    parse_date_range,
    parse_duration,
    parse_id_list,
    parse_travel_time,
)
from models.events import EventSource
from services.availability import AvailabilityService
from services.calendar import CalendarAggregator, CalendarFilters, SourceToggles
from services.directory_cache import ExternalDirectoryCache
from services.ports import SchedulingClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/calendar", dependencies=[Depends(verify_api_key)])

Store = Annotated[SqliteCalendarStore, Depends(get_store)]
Client = Annotated[SchedulingClient | None, Depends(get_client)]
DirectoryCache = Annotated[ExternalDirectoryCache, Depends(get_directory_cache)]
OrganizationId = Annotated[int, Depends(get_organization_id)]


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _new_request_log(request: Request, organization_id: int) -> RequestLog:
    return RequestLog(
        endpoint=request.url.path,
        method=request.method,
        client_ip=get_client_ip(request),
        organization_id=organization_id,
        query=str(request.query_params) or None,
    )


async def _execute(request_log: RequestLog, work: Callable[[], Any]) -> Any:
    """
    Run blocking calendar work in the thread pool and translate domain errors.

    The request is always written to the request log, whatever the outcome.
    """
    start_time = time.time()
    try:
        result = await asyncio.to_thread(work)
        request_log.status_code = 200
        return result

    except ConfigurationError as e:
        request_log.status_code = 400
        request_log.error_code = ErrorCodes.INVALID_REQUEST
        request_log.error_message = str(e)
        request_log.details.append(("validation_error", str(e)))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid request parameters", "code": ErrorCodes.INVALID_REQUEST, "details": [str(e)]},
        )

    except NotFound as e:
        request_log.status_code = 404
        request_log.error_code = ErrorCodes.NOT_FOUND
        request_log.error_message = str(e)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": str(e), "code": ErrorCodes.NOT_FOUND, "details": []},
        )

    except Exception as e:
        logger.exception("Calendar request failed")
        request_log.status_code = 500
        request_log.error_code = ErrorCodes.INTERNAL_ERROR
        request_log.error_message = str(e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Internal server error", "code": ErrorCodes.INTERNAL_ERROR, "details": []},
        )

    finally:
        request_log.processing_time_ms = int((time.time() - start_time) * 1000)
        try:
            log_request(request_log)
        except Exception as e:
            # Don't fail the request if logging fails
            logger.warning("Could not write request log %s: %s", request_log.request_id, e)


@router.get("/combined", response_model=CombinedCalendarResponse)
async def combined_calendar(
    request: Request,
    store: Store,
    client: Client,
    directory_cache: DirectoryCache,
    organization_id: OrganizationId,
    start_date: str | None = None,
    end_date: str | None = None,
    worker_ids: str | None = None,
    team_ids: str | None = None,
    external_admin_ids: str | None = None,
    external_team_ids: str | None = None,
    include_blocks: bool = True,
    include_leave: bool = True,
    include_public_holidays: bool = True,
    include_work_items: bool = True,
    include_external_tasks: bool = True,
):
    """
    Chronological view of every commitment in the date range.

    A source that fails is reported under metadata.errors; the others are still returned.
    """
    request_log = _new_request_log(request, organization_id)

    def work():
        date_range = parse_date_range(start_date, end_date)
        filters = CalendarFilters(
            worker_ids=parse_id_list(worker_ids),
            team_ids=parse_id_list(team_ids),
            external_admin_ids=parse_id_list(external_admin_ids),
            external_team_ids=parse_id_list(external_team_ids),
        )
        toggles = SourceToggles(
            blocks=include_blocks,
            leave=include_leave,
            public_holidays=include_public_holidays,
            work_items=include_work_items,
            external_tasks=include_external_tasks,
        )
        aggregator = CalendarAggregator(organization_id, store, store, client, directory_cache)
        result = aggregator.aggregate(date_range, filters, toggles)
        request_log.events_returned = len(result.events)
        for source, message in result.metadata["errors"].items():
            request_log.details.append(("source_error", f"{source}: {message}"))
        return result

    result = await _execute(request_log, work)
    return CombinedCalendarResponse(**result.to_dict())


@router.get("/availability/worker/{worker_id}", response_model=SlotsResponse)
async def worker_availability(
    worker_id: int,
    request: Request,
    store: Store,
    client: Client,
    organization_id: OrganizationId,
    start_date: str | None = None,
    end_date: str | None = None,
    duration: str = DEFAULT_DURATION,
    travel_time: Annotated[int | None, Query(description="Travel minutes before and after")] = None,
):
    """Bookable slots for one worker."""
    request_log = _new_request_log(request, organization_id)

    def work():
        date_range = parse_date_range(start_date, end_date)
        service = AvailabilityService(organization_id, store, store, client)
        slots = service.availability_for_worker(
            worker_id,
            date_range,
            parse_duration(duration),
            parse_travel_time(travel_time),
            default_working_hours(),
        )
        request_log.slots_returned = len(slots)
        return slots

    slots = await _execute(request_log, work)
    return SlotsResponse(slots=[s.to_dict() for s in slots], count=len(slots))


@router.get("/availability/team/{team_id}", response_model=TeamAvailabilityResponse)
async def team_availability(
    team_id: int,
    request: Request,
    store: Store,
    client: Client,
    organization_id: OrganizationId,
    start_date: str | None = None,
    end_date: str | None = None,
    duration: str = DEFAULT_DURATION,
    travel_time: Annotated[int | None, Query(description="Travel minutes before and after")] = None,
):
    """Slots where at least one team member is free, with the free members listed per slot."""
    request_log = _new_request_log(request, organization_id)

    def work():
        date_range = parse_date_range(start_date, end_date)
        service = AvailabilityService(organization_id, store, store, client)
        result = service.availability_for_team(
            team_id,
            date_range,
            parse_duration(duration),
            parse_travel_time(travel_time),
            default_working_hours(),
        )
        request_log.slots_returned = len(result.slots)
        return result

    result = await _execute(request_log, work)
    data = result.to_dict()
    return TeamAvailabilityResponse(slots=data["slots"], per_member=data["perMember"], count=len(result.slots))


@router.get("/filters", response_model=FiltersResponse)
async def calendar_filters(
    request: Request,
    store: Store,
    client: Client,
    directory_cache: DirectoryCache,
    organization_id: OrganizationId,
):
    """Everything a client needs to build the worker, team and source pickers."""
    request_log = _new_request_log(request, organization_id)

    def work():
        workers = store.list_workers_in_org(organization_id)
        filters: dict[str, Any] = {
            "localTeams": [{"id": t.id, "name": t.name} for t in store.list_teams(organization_id)],
            "workers": [
                {
                    "id": w.id,
                    "name": w.display_name,
                    "email": w.email,
                    "isActive": w.is_active,
                    "externalAdminId": w.external_admin_id,
                }
                for w in workers
            ],
            "teamMemberships": [
                {"teamId": m.team_id, "workerId": m.worker_id, "role": m.role}
                for m in store.list_team_memberships(organization_id)
            ],
            "externalTeams": [],
            "externalAdmins": [],
            "dataSources": [source.value for source in EventSource],
            "errors": {},
        }
        if client is None:
            filters["errors"]["external"] = "External scheduling system is not configured"
            return filters

        try:
            filters["externalTeams"] = [
                {"id": t.id, "name": t.title, "color": t.color, "memberIds": t.member_admin_ids}
                for t in directory_cache.teams(organization_id, client)
            ]
        except Exception as e:
            logger.warning("External teams unavailable: %s", e)
            filters["errors"]["externalTeams"] = str(e)
        try:
            filters["externalAdmins"] = [
                {"id": a.id, "name": a.name, "email": a.email, "isActive": a.is_active}
                for a in directory_cache.administrators(organization_id, client)
            ]
        except Exception as e:
            logger.warning("External administrators unavailable: %s", e)
            filters["errors"]["externalAdmins"] = str(e)
        return filters

    filters = await _execute(request_log, work)
    return FiltersResponse(filters=filters)


@router.post("/external/refresh")
async def refresh_external_directory(
    directory_cache: DirectoryCache,
    organization_id: OrganizationId,
):
    """Drop the cached external teams and administrators for this organization."""
    directory_cache.invalidate(organization_id)
    logger.info("External directory cache invalidated for organization %s", organization_id)
    return {"success": True, "message": f"External directory cache cleared for organization {organization_id}"}
