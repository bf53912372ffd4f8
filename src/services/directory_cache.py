"""
Time-boxed memo of the external system's team and administrator directory.
"""

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone

from core.config import EXTERNAL_DIRECTORY_TTL_SECONDS
from core.errors import MalformedRecord
from models.records import ExternalAdministrator, ExternalTeam
from services.normalizer import parse_external_administrator, parse_external_team
from services.ports import SchedulingClient

logger = logging.getLogger(__name__)


class ExternalDirectoryCache:
    """
    Per-organization memo of external teams and administrators.

    Entries expire after ttl_seconds and can be dropped early with invalidate().
    One instance is shared by the API process and injected into the services.
    """

    def __init__(
        self,
        ttl_seconds: int = EXTERNAL_DIRECTORY_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[int, str], tuple[float, datetime, list]] = {}
        self._lock = threading.Lock()

    def teams(self, organization_id: int, client: SchedulingClient) -> list[ExternalTeam]:
        return self._get(organization_id, "teams", lambda: self._load_teams(client))

    def administrators(self, organization_id: int, client: SchedulingClient) -> list[ExternalAdministrator]:
        return self._get(organization_id, "administrators", lambda: self._load_administrators(client))

    def last_fetched_at(self, organization_id: int, kind: str) -> datetime | None:
        with self._lock:
            entry = self._entries.get((organization_id, kind))
        return entry[1] if entry else None

    def invalidate(self, organization_id: int | None = None) -> None:
        """Drop cached entries for one organization, or all of them."""
        with self._lock:
            if organization_id is None:
                self._entries.clear()
                return
            for key in [k for k in self._entries if k[0] == organization_id]:
                del self._entries[key]

    def _get(self, organization_id: int, kind: str, loader: Callable[[], list]) -> list:
        key = (organization_id, kind)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[0] > now:
                return entry[2]

        value = loader()
        with self._lock:
            self._entries[key] = (now + self.ttl_seconds, datetime.now(timezone.utc), value)
        logger.info("Cached %d external %s for organization %s", len(value), kind, organization_id)
        return value

    @staticmethod
    def _load_teams(client: SchedulingClient) -> list[ExternalTeam]:
        teams = []
        for raw in client.list_teams():
            try:
                teams.append(parse_external_team(raw))
            except MalformedRecord as e:
                logger.warning("Skipping external team: %s", e)
        return teams

    @staticmethod
    def _load_administrators(client: SchedulingClient) -> list[ExternalAdministrator]:
        admins = []
        for raw in client.list_administrators():
            try:
                admins.append(parse_external_administrator(raw))
            except MalformedRecord as e:
                logger.warning("Skipping external administrator: %s", e)
        return admins
