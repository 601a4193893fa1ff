"""Collaborator contracts injected into the core.

The core owns grants and requests but not their storage technology, and
owns neither identities nor outbound delivery. Concrete implementations
live in :mod:`agentgate.storage` (in-memory) or in the embedding service.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Iterable, List, Optional

from .models import (
    AgentRequest,
    NotificationEvent,
    Organization,
    PermissionGrant,
    RequestStatus,
    Subject,
)


class IdentityProvider(ABC):
    """Resolves subjects and tenants by id (external, read-only)."""

    @abstractmethod
    def get_subject(self, subject_id: str) -> Subject:
        """Raises NotFoundError for unknown ids."""
        raise NotImplementedError

    @abstractmethod
    def get_organization(self, organization_id: str) -> Optional[Organization]:
        raise NotImplementedError


class NotificationSink(ABC):
    """Fire-and-forget delivery of workflow events to a user."""

    @abstractmethod
    def notify(self, user_id: str, event: NotificationEvent) -> None:
        raise NotImplementedError


class GrantRepository(ABC):
    @abstractmethod
    def get(self, grant_id: str) -> Optional[PermissionGrant]:
        raise NotImplementedError

    @abstractmethod
    def save(self, grant: PermissionGrant) -> PermissionGrant:
        """Insert or replace a grant by id."""
        raise NotImplementedError

    @abstractmethod
    def list_for_grantee(self, grantee_id: str) -> List[PermissionGrant]:
        raise NotImplementedError

    @abstractmethod
    def list_for_request(self, request_id: str) -> List[PermissionGrant]:
        raise NotImplementedError


class RequestRepository(ABC):
    @abstractmethod
    def get(self, request_id: str) -> Optional[AgentRequest]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, request: AgentRequest) -> AgentRequest:
        """Insert a new request.

        Must enforce uniqueness of ``(requester_id, agent_id)`` among pending
        requests and raise ConflictError on violation.
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, request: AgentRequest) -> AgentRequest:
        raise NotImplementedError

    @abstractmethod
    def find_pending(self, requester_id: str, agent_id: str) -> Optional[AgentRequest]:
        raise NotImplementedError

    @abstractmethod
    def list_for_requester(
        self,
        requester_id: str,
        statuses: Optional[Iterable[RequestStatus]] = None,
    ) -> List[AgentRequest]:
        raise NotImplementedError

    @abstractmethod
    def list_by_status(
        self,
        status: RequestStatus,
        organization_id: Optional[str] = None,
    ) -> List[AgentRequest]:
        """Requests in a status, optionally limited to one organization."""
        raise NotImplementedError

    @abstractmethod
    def list_all(self, organization_id: Optional[str] = None) -> List[AgentRequest]:
        raise NotImplementedError


class TransactionalStore(ABC):
    """Groups both repositories under one transaction boundary.

    Everything executed inside ``with store.transaction():`` commits or
    rolls back as a unit. Transactions must be re-entrant.
    """

    grants: GrantRepository
    requests: RequestRepository

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        raise NotImplementedError


__all__ = [
    "GrantRepository",
    "IdentityProvider",
    "NotificationSink",
    "RequestRepository",
    "TransactionalStore",
]
