"""Approval request state machine.

States: ``pending`` → ``approved`` | ``denied``. Terminal states never change;
re-review means submitting a new request that ``supersedes`` the old one.

Both mutating operations run inside one store transaction:
- ``submit``: duplicate-pending check + insert (the store's unique pending
  index backs the check under concurrency).
- ``resolve``: read + terminal-state guard + transition + grant creation.
  An approved request always has exactly one grant and vice versa.

The requester is notified after the transaction commits. Notification
failures are logged and never undo the transition.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from .exceptions import (
    ConflictError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from .grants import GrantStore, restrictions_for_scope
from .interfaces import NotificationSink, TransactionalStore
from .logging import get_gate_logger, safe_log_value
from .models import (
    AgentRequest,
    ApprovalStats,
    GrantSource,
    NotificationEvent,
    RequestPriority,
    RequestStatus,
    ReviewDecision,
    Role,
    Scope,
    Subject,
    utcnow,
)
from .notifications import NullNotificationSink, dispatch
from .permissions.policy import AssignmentPolicy
from .permissions.roles import rank

logger = get_gate_logger(__name__)

_PRIORITY_ORDER = {
    RequestPriority.URGENT: 0,
    RequestPriority.HIGH: 1,
    RequestPriority.NORMAL: 2,
    RequestPriority.LOW: 3,
}


class RequestWorkflow:
    """Creates and resolves approval requests.

    Args:
        store: Transactional store (requests and grants).
        policy: Assignment policy used to compute the resolver role.
        grants: Grant store that materializes approvals.
        notifier: Sink receiving ``request_approved`` / ``request_denied``.
        notifications_enabled: Deliver events at all.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: TransactionalStore,
        policy: AssignmentPolicy,
        grants: GrantStore,
        notifier: Optional[NotificationSink] = None,
        *,
        notifications_enabled: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._policy = policy
        self._grants = grants
        self._notifier = notifier or NullNotificationSink()
        self._notifications_enabled = notifications_enabled
        self._clock = clock

    # ── Submission ──────────────────────────────────────

    def submit(
        self,
        requester: Subject,
        agent_id: str,
        scope: Scope,
        reason: str,
        *,
        priority: RequestPriority = RequestPriority.NORMAL,
        supersedes: Optional[str] = None,
    ) -> AgentRequest:
        """Open a pending request for an agent that needs approval.

        Raises:
            InvalidArgumentError: empty reason, or the agent is directly
                grantable to the requester (grant it instead).
            ConflictError: a pending request exists for (requester, agent).
            PermissionDeniedError: scope outside the requester's own.
            NotFoundError: unknown agent, or unknown ``supersedes`` id.
            FailedPreconditionError: ``supersedes`` names a pending request.
        """
        if not reason or not reason.strip():
            raise InvalidArgumentError("Request reason is required", requester_id=requester.id, agent_id=agent_id)

        with self._store.transaction():
            existing = self._store.requests.find_pending(requester.id, agent_id)
            if existing is not None:
                raise ConflictError(
                    "Pending request already exists",
                    requester_id=requester.id,
                    agent_id=agent_id,
                    request_id=existing.id,
                )

            decision = self._policy.evaluate(requester, agent_id, scope)
            if decision.is_denied:
                raise PermissionDeniedError(
                    "Scope outside requester's own",
                    requester_id=requester.id,
                    agent_id=agent_id,
                    reason=decision.reason,
                )
            if decision.is_direct_grant:
                raise InvalidArgumentError(
                    "Agent is directly grantable; no request needed",
                    requester_id=requester.id,
                    agent_id=agent_id,
                    reason=decision.reason,
                )

            if supersedes is not None:
                self._check_supersedes(supersedes, requester.id, agent_id)

            request = AgentRequest(
                requester_id=requester.id,
                agent_id=agent_id,
                scope=scope,
                request_reason=reason.strip(),
                resolver_role_required=decision.min_resolver_role,
                priority=priority,
                supersedes=supersedes,
                requested_at=self._clock(),
            )
            self._store.requests.insert(request)

        logger.info(
            "Request submitted for agent %s, resolver %s: %s",
            agent_id,
            request.resolver_role_required.value,
            safe_log_value(reason, limit=120),
            request=request,
        )
        return request

    def _check_supersedes(self, previous_id: str, requester_id: str, agent_id: str) -> None:
        previous = self._store.requests.get(previous_id)
        if previous is None:
            raise NotFoundError("Superseded request not found", request_id=previous_id)
        if previous.requester_id != requester_id or previous.agent_id != agent_id:
            raise InvalidArgumentError(
                "Superseded request belongs to another requester or agent",
                request_id=previous_id,
            )
        if not previous.status.is_terminal:
            raise FailedPreconditionError("Superseded request is still pending", request_id=previous_id)

    # ── Resolution ──────────────────────────────────────

    def resolve(
        self,
        reviewer: Subject,
        request_id: str,
        decision: ReviewDecision | str,
        notes: Optional[str] = None,
    ) -> AgentRequest:
        """Approve or deny a pending request.

        Raises:
            InvalidArgumentError: unknown decision value.
            NotFoundError: unknown request.
            FailedPreconditionError: request no longer pending.
            PermissionDeniedError: reviewer ranks below the resolver role,
                is outside the request scope, or is the requester.
        """
        try:
            decision = ReviewDecision(decision)
        except ValueError:
            raise InvalidArgumentError("Unknown review decision", decision=str(decision)) from None

        with self._store.transaction():
            request = self._store.requests.get(request_id)
            if request is None:
                raise NotFoundError("Unknown request", request_id=request_id)
            if request.status is not RequestStatus.PENDING:
                raise FailedPreconditionError(
                    "Request already resolved",
                    request_id=request_id,
                    status=request.status.value,
                )
            self._check_reviewer(reviewer, request)

            now = self._clock()
            request.reviewed_by = reviewer.id
            request.reviewed_at = now
            request.review_notes = notes

            if decision is ReviewDecision.APPROVE:
                grant = self._grants.create(
                    request.agent_id,
                    request.requester_id,
                    reviewer,
                    restrictions_for_scope(request.scope),
                    source=GrantSource.APPROVED_REQUEST,
                    request_id=request.id,
                    organization_id=request.scope.organization_id,
                )
                request.status = RequestStatus.APPROVED
                request.grant_id = grant.id
            else:
                request.status = RequestStatus.DENIED

            self._store.requests.update(request)

        logger.info("Request %s by %s", request.status.value, reviewer.id, request=request)

        if self._notifications_enabled:
            dispatch(
                self._notifier,
                request.requester_id,
                NotificationEvent(
                    kind=f"request_{request.status.value}",
                    request_id=request.id,
                    agent_id=request.agent_id,
                    reviewed_by=reviewer.id,
                    grant_id=request.grant_id,
                    occurred_at=now,
                ),
            )
        return request

    def can_resolve(self, reviewer: Subject, request: AgentRequest) -> bool:
        try:
            self._check_reviewer(reviewer, request)
        except PermissionDeniedError:
            return False
        return True

    def _check_reviewer(self, reviewer: Subject, request: AgentRequest) -> None:
        if reviewer.id == request.requester_id:
            raise PermissionDeniedError("Requests cannot be self-approved", request_id=request.id)
        if rank(reviewer.role) < rank(request.resolver_role_required):
            raise PermissionDeniedError(
                "Reviewer role below required resolver role",
                request_id=request.id,
                reviewer_id=reviewer.id,
                role=reviewer.role.value,
                required=request.resolver_role_required.value,
            )
        if not self._policy.scopes.contains(reviewer, request.scope):
            raise PermissionDeniedError(
                "Reviewer outside request scope",
                request_id=request.id,
                reviewer_id=reviewer.id,
            )

    # ── Queries ─────────────────────────────────────────

    def get(self, request_id: str) -> AgentRequest:
        request = self._store.requests.get(request_id)
        if request is None:
            raise NotFoundError("Unknown request", request_id=request_id)
        return request

    def pending_for(self, requester_id: str) -> list[AgentRequest]:
        return self._store.requests.list_for_requester(requester_id, [RequestStatus.PENDING])

    def history_for(self, requester_id: str) -> list[AgentRequest]:
        return self._store.requests.list_for_requester(requester_id)

    def review_queue(self, reviewer: Subject) -> list[AgentRequest]:
        """Pending requests this reviewer may resolve, most urgent and oldest first."""
        organization_id = None if reviewer.role is Role.SUPER_ADMIN else reviewer.organization_id
        pending = self._store.requests.list_by_status(RequestStatus.PENDING, organization_id)
        queue = [r for r in pending if self.can_resolve(reviewer, r)]
        queue.sort(key=lambda r: (_PRIORITY_ORDER[r.priority], r.requested_at))
        return queue

    def stats(self, organization_id: Optional[str] = None) -> ApprovalStats:
        requests = self._store.requests.list_all(organization_id)
        now = self._clock()

        counts = {status: 0 for status in RequestStatus}
        response_hours: list[float] = []
        oldest_pending: Optional[datetime] = None
        for request in requests:
            counts[request.status] += 1
            if request.status is RequestStatus.PENDING:
                if oldest_pending is None or request.requested_at < oldest_pending:
                    oldest_pending = request.requested_at
            elif request.reviewed_at is not None:
                response_hours.append((request.reviewed_at - request.requested_at).total_seconds() / 3600)

        return ApprovalStats(
            pending=counts[RequestStatus.PENDING],
            approved=counts[RequestStatus.APPROVED],
            denied=counts[RequestStatus.DENIED],
            total_requests=len(requests),
            avg_response_hours=sum(response_hours) / len(response_hours) if response_hours else 0.0,
            oldest_pending_days=(now - oldest_pending).total_seconds() / 86400 if oldest_pending else 0.0,
        )


__all__ = ["RequestWorkflow"]
