"""
Identity reconciliation between the local workforce directory and the
external scheduling system.
"""

from collections import defaultdict
from collections.abc import Iterable

from models.records import ExternalTeam, TeamMembership, Worker
from services.ports import WorkforceDirectory


class IdentityResolver:
    """
    Maps local worker ids to external admin ids and back, and expands team
    references into member sets.

    Built once per request from a directory snapshot.
    """

    def __init__(
        self,
        workers: Iterable[Worker],
        memberships: Iterable[TeamMembership] = (),
        external_teams: Iterable[ExternalTeam] = (),
    ):
        self.workers = {w.id: w for w in workers}
        self._team_members: dict[int, set[int]] = defaultdict(set)
        for membership in memberships:
            self._team_members[membership.team_id].add(membership.worker_id)
        self._external_team_members = {t.id: set(t.member_admin_ids) for t in external_teams}

        self._worker_to_admin: dict[int, int] = {}
        self._admin_to_worker: dict[int, int] = {}
        for worker in self.workers.values():
            if worker.external_admin_id is not None:
                self._worker_to_admin[worker.id] = worker.external_admin_id
                self._admin_to_worker[worker.external_admin_id] = worker.id

    @classmethod
    def load(
        cls,
        directory: WorkforceDirectory,
        organization_id: int,
        external_teams: Iterable[ExternalTeam] = (),
    ) -> "IdentityResolver":
        return cls(
            workers=directory.list_workers_in_org(organization_id),
            memberships=directory.list_team_memberships(organization_id),
            external_teams=external_teams,
        )

    def add_external_teams(self, external_teams: Iterable[ExternalTeam]) -> None:
        for team in external_teams:
            self._external_team_members[team.id] = set(team.member_admin_ids)

    def resolve_effective_worker_ids(
        self, worker_ids: Iterable[int] = (), team_ids: Iterable[int] = ()
    ) -> set[int]:
        """Explicit worker ids plus members of the given teams. Unknown teams add nothing."""
        effective = set(worker_ids)
        for team_id in team_ids:
            effective |= self._team_members.get(team_id, set())
        return effective

    def resolve_external_admin_ids(
        self,
        worker_ids: Iterable[int] = (),
        explicit_external_ids: Iterable[int] = (),
        external_team_ids: Iterable[int] = (),
    ) -> set[int]:
        """Mapped admin ids of the workers plus explicit ids and external team members."""
        admin_ids = set(explicit_external_ids)
        for worker_id in worker_ids:
            admin_id = self._worker_to_admin.get(worker_id)
            if admin_id is not None:
                admin_ids.add(admin_id)
        for team_id in external_team_ids:
            admin_ids |= self._external_team_members.get(team_id, set())
        return admin_ids

    def map_external_admin_id_to_worker(self, admin_id: int | None) -> int | None:
        if admin_id is None:
            return None
        return self._admin_to_worker.get(admin_id)

    def external_admin_id_for(self, worker_id: int) -> int | None:
        return self._worker_to_admin.get(worker_id)

    def team_member_ids(self, team_id: int) -> set[int]:
        return set(self._team_members.get(team_id, set()))

    def worker_name(self, worker_id: int | None) -> str | None:
        worker = self.workers.get(worker_id)
        return worker.display_name if worker else None
