"""In-memory implementations of the collaborator contracts.

Used by tests and single-process deployments. ``InMemoryStore`` serializes
all access behind one re-entrant lock; ``transaction()`` snapshots both
tables on entry and restores them if the block raises.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from ..exceptions import ConflictError, NotFoundError, StorageError
from ..interfaces import (
    GrantRepository,
    IdentityProvider,
    RequestRepository,
    TransactionalStore,
)
from ..models import (
    AgentRequest,
    Organization,
    PermissionGrant,
    RequestStatus,
    Subject,
)

logger = logging.getLogger(__name__)


class _MemoryGrants(GrantRepository):
    def __init__(self, store: "InMemoryStore") -> None:
        self._store = store
        self._rows: dict[str, PermissionGrant] = {}

    def get(self, grant_id: str) -> Optional[PermissionGrant]:
        with self._store.lock:
            row = self._rows.get(grant_id)
            return row.model_copy(deep=True) if row is not None else None

    def save(self, grant: PermissionGrant) -> PermissionGrant:
        with self._store.lock:
            self._rows[grant.id] = grant.model_copy(deep=True)
            return grant

    def list_for_grantee(self, grantee_id: str) -> list[PermissionGrant]:
        with self._store.lock:
            rows = [g for g in self._rows.values() if g.grantee_id == grantee_id]
            return [g.model_copy(deep=True) for g in sorted(rows, key=lambda g: g.created_at)]

    def list_for_request(self, request_id: str) -> list[PermissionGrant]:
        with self._store.lock:
            return [g.model_copy(deep=True) for g in self._rows.values() if g.request_id == request_id]


class _MemoryRequests(RequestRepository):
    def __init__(self, store: "InMemoryStore") -> None:
        self._store = store
        self._rows: dict[str, AgentRequest] = {}
        # Unique index: (requester_id, agent_id) → id of the pending request
        self._pending: dict[tuple[str, str], str] = {}

    def get(self, request_id: str) -> Optional[AgentRequest]:
        with self._store.lock:
            row = self._rows.get(request_id)
            return row.model_copy(deep=True) if row is not None else None

    def insert(self, request: AgentRequest) -> AgentRequest:
        with self._store.lock:
            if request.id in self._rows:
                raise StorageError("Duplicate request id", request_id=request.id)
            key = (request.requester_id, request.agent_id)
            if request.status is RequestStatus.PENDING:
                if key in self._pending:
                    raise ConflictError(
                        "Pending request already exists",
                        requester_id=request.requester_id,
                        agent_id=request.agent_id,
                        request_id=self._pending[key],
                    )
                self._pending[key] = request.id
            self._rows[request.id] = request.model_copy(deep=True)
            return request

    def update(self, request: AgentRequest) -> AgentRequest:
        with self._store.lock:
            if request.id not in self._rows:
                raise NotFoundError("Unknown request", request_id=request.id)
            key = (request.requester_id, request.agent_id)
            if request.status is RequestStatus.PENDING:
                owner = self._pending.get(key)
                if owner is not None and owner != request.id:
                    raise ConflictError("Pending request already exists", request_id=owner)
                self._pending[key] = request.id
            elif self._pending.get(key) == request.id:
                del self._pending[key]
            self._rows[request.id] = request.model_copy(deep=True)
            return request

    def find_pending(self, requester_id: str, agent_id: str) -> Optional[AgentRequest]:
        with self._store.lock:
            request_id = self._pending.get((requester_id, agent_id))
            return self.get(request_id) if request_id else None

    def list_for_requester(
        self,
        requester_id: str,
        statuses: Optional[Iterable[RequestStatus]] = None,
    ) -> list[AgentRequest]:
        wanted = set(statuses) if statuses is not None else None
        with self._store.lock:
            rows = [
                r
                for r in self._rows.values()
                if r.requester_id == requester_id and (wanted is None or r.status in wanted)
            ]
            return [r.model_copy(deep=True) for r in sorted(rows, key=lambda r: r.requested_at)]

    def list_by_status(
        self,
        status: RequestStatus,
        organization_id: Optional[str] = None,
    ) -> list[AgentRequest]:
        return [r for r in self.list_all(organization_id) if r.status is status]

    def list_all(self, organization_id: Optional[str] = None) -> list[AgentRequest]:
        with self._store.lock:
            rows = [
                r
                for r in self._rows.values()
                if organization_id is None or r.scope.organization_id == organization_id
            ]
            return [r.model_copy(deep=True) for r in sorted(rows, key=lambda r: r.requested_at)]


class InMemoryStore(TransactionalStore):
    """Thread-safe, transactional in-memory store."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._depth = 0
        self.grants = _MemoryGrants(self)
        self.requests = _MemoryRequests(self)

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        with self.lock:
            outermost = self._depth == 0
            if outermost:
                snapshot = (
                    dict(self.grants._rows),
                    dict(self.requests._rows),
                    dict(self.requests._pending),
                )
            self._depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    self.grants._rows, self.requests._rows, self.requests._pending = snapshot
                    logger.debug("Rolled back in-memory transaction")
                raise
            finally:
                self._depth -= 1


class InMemoryIdentityProvider(IdentityProvider):
    """Dictionary-backed identity/tenant provider."""

    def __init__(
        self,
        subjects: Iterable[Subject] = (),
        organizations: Iterable[Organization] = (),
    ) -> None:
        self._subjects = {s.id: s for s in subjects}
        self._organizations = {o.id: o for o in organizations}

    def add_subject(self, subject: Subject) -> None:
        self._subjects[subject.id] = subject

    def add_organization(self, organization: Organization) -> None:
        self._organizations[organization.id] = organization

    def get_subject(self, subject_id: str) -> Subject:
        try:
            return self._subjects[subject_id]
        except KeyError:
            raise NotFoundError("Unknown subject", subject_id=subject_id) from None

    def get_organization(self, organization_id: str) -> Optional[Organization]:
        return self._organizations.get(organization_id)


__all__ = [
    "InMemoryIdentityProvider",
    "InMemoryStore",
]
