"""
HTTP client for the external scheduling system with lazy initialization.
"""

import logging
from typing import Any

import httpx

from core.config import (
    EXTERNAL_TASK_MAX_PAGES,
    EXTERNAL_TASK_PAGE_SIZE,
    EXTERNAL_TEAM_PATHS,
    SCHEDULING_AUTH_HEADER,
    SCHEDULING_BASE_URL,
    SCHEDULING_TIMEOUT_SECONDS,
)
from core.errors import SourceUnavailable
from models.records import ExternalAssigneeKind
from services.ports import SchedulingClient

logger = logging.getLogger(__name__)

API_PREFIX = "api/2.0"


def _items(payload: Any) -> list[dict]:
    """Listing endpoints answer with a list, an {'items': [...]} envelope or an id-keyed object."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if isinstance(payload.get("items"), list):
            return payload["items"]
        return [value for value in payload.values() if isinstance(value, dict)]
    return []


class HttpSchedulingClient(SchedulingClient):
    """
    Pre-authenticated client for the external scheduling API.

    Transport failures and timeouts surface as SourceUnavailable; nothing is retried here.
    """

    def __init__(
        self,
        base_url: str,
        auth_header: str,
        timeout: float = SCHEDULING_TIMEOUT_SECONDS,
        http_client: httpx.Client | None = None,
        page_size: int = EXTERNAL_TASK_PAGE_SIZE,
        max_pages: int = EXTERNAL_TASK_MAX_PAGES,
    ):
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.max_pages = max_pages
        self._http = http_client or httpx.Client(timeout=timeout)
        self._headers = {"Authorization": auth_header, "Content-Type": "application/json"}

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{API_PREFIX}/{path.lstrip('/')}"

    def _get(self, source: str, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = self._http.get(self._url(path), params=params, headers=self._headers)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SourceUnavailable(source, e) from e

    def list_tasks(self, filters: dict[str, Any] | None = None) -> list[dict]:
        """
        Page through scheduling tasks.

        Supported filters: assigned_admin_id, team_id, status, project_id. The
        scan stops at the first short page or after max_pages pages.
        """
        filters = filters or {}
        params: dict[str, Any] = {}
        if filters.get("assigned_admin_id"):
            params["main_attributes[assignee]"] = filters["assigned_admin_id"]
            params["main_attributes[assigned_to]"] = ExternalAssigneeKind.ADMINISTRATOR.value
        elif filters.get("team_id"):
            params["main_attributes[assignee]"] = filters["team_id"]
            params["main_attributes[assigned_to]"] = ExternalAssigneeKind.TEAM.value
        for key in ("status", "project_id"):
            if filters.get(key):
                params[f"main_attributes[{key}]"] = filters[key]

        tasks: list[dict] = []
        for page in range(self.max_pages):
            page_params = {**params, "limit": self.page_size, "offset": page * self.page_size}
            batch = _items(self._get("external_tasks", "admin/scheduling/tasks", page_params))
            tasks.extend(batch)
            if len(batch) < self.page_size:
                break
        else:
            logger.warning("External task scan stopped at the %d page cap (%d tasks)", self.max_pages, len(tasks))

        logger.info("Fetched %d external tasks", len(tasks))
        return tasks

    def list_teams(self) -> list[dict]:
        last_error: Exception | None = None
        for path in EXTERNAL_TEAM_PATHS:
            try:
                teams = _items(self._get("external_teams", path))
            except SourceUnavailable as e:
                logger.debug("Team path %s failed: %s", path, e.cause)
                last_error = e.cause
                continue
            logger.info("Found %d external teams at %s", len(teams), path)
            return teams
        raise SourceUnavailable("external_teams", last_error or RuntimeError("no team path configured"))

    def list_administrators(self) -> list[dict]:
        return _items(self._get("external_administrators", "admin/administration/administrators"))

    def close(self) -> None:
        self._http.close()


_scheduling_client: HttpSchedulingClient | None = None


def get_scheduling_client() -> HttpSchedulingClient | None:
    """Get or create the scheduling client (lazy initialization). None when not configured."""
    global _scheduling_client
    if not SCHEDULING_BASE_URL or not SCHEDULING_AUTH_HEADER:
        return None
    if _scheduling_client is None:
        _scheduling_client = HttpSchedulingClient(
            base_url=SCHEDULING_BASE_URL,
            auth_header=SCHEDULING_AUTH_HEADER,
        )
    return _scheduling_client


def close_scheduling_client() -> None:
    """Close and forget the shared client so the next call builds a fresh one."""
    global _scheduling_client
    if _scheduling_client is not None:
        _scheduling_client.close()
        _scheduling_client = None
