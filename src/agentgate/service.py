"""Service boundary: id-based operations over the decision core.

Transport-agnostic. Resolves subjects through the injected identity
provider, then delegates to the policy, workflow, grant store and summary.
:mod:`agentgate.transport` exposes the same operations over gRPC.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from .config import GateConfig
from .exceptions import FailedPreconditionError, InvalidArgumentError, NotFoundError, PermissionDeniedError
from .grants import GrantStore, restrictions_for_scope
from .interfaces import IdentityProvider, NotificationSink, TransactionalStore
from .models import (
    AgentRequest,
    ApprovalStats,
    Decision,
    GranteeType,
    GrantRestrictions,
    PermissionGrant,
    PermissionSummary,
    RequestPriority,
    ReviewDecision,
    Role,
    Scope,
    Subject,
    utcnow,
)
from .notifications import LoggingNotificationSink
from .permissions.catalog import AgentCatalog
from .permissions.policy import AssignmentPolicy
from .permissions.roles import rank
from .permissions.scope import ScopeResolver
from .storage.memory import InMemoryStore
from .summary import PermissionSummarizer
from .workflow import RequestWorkflow

ScopeLike = Union[Scope, Mapping[str, Any]]


def _as_scope(scope: ScopeLike) -> Scope:
    if isinstance(scope, Scope):
        return scope
    try:
        return Scope.model_validate(scope)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid scope: {e}") from e


class AgentAccessService:
    """The six external operations, plus direct, network and company grants and review queues.

    Args:
        identity: Resolves subjects and organizations by id.
        catalog: Published agents.
        store: Transactional store. Defaults to :class:`InMemoryStore`.
        notifier: Notification sink. Defaults to logging only.
        config: Service configuration. Defaults to ``GateConfig()``.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        catalog: AgentCatalog,
        store: Optional[TransactionalStore] = None,
        notifier: Optional[NotificationSink] = None,
        config: Optional[GateConfig] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config or GateConfig()
        self.identity = identity
        self.catalog = catalog
        self.store = store or InMemoryStore()
        self.scopes = ScopeResolver(self.config.unassigned_organization_ids)
        self.policy = AssignmentPolicy(catalog, self.scopes)
        self.grants = GrantStore(
            self.store,
            scopes=self.scopes,
            default_ttl_seconds=self.config.default_grant_ttl_seconds,
            clock=clock,
        )
        self.workflow = RequestWorkflow(
            self.store,
            self.policy,
            self.grants,
            notifier or LoggingNotificationSink(),
            notifications_enabled=self.config.notifications_enabled,
            clock=clock,
        )
        self.summaries = PermissionSummarizer(self.grants, self.workflow, self.scopes)

    def _subject(self, subject_id: str) -> Subject:
        subject = self.identity.get_subject(subject_id)
        if subject.network_id is not None:
            self.scopes.validate_subject(subject, self.identity.get_organization(subject.organization_id))
        return subject

    # ── Core operations ─────────────────────────────────

    def evaluate_assignment(self, subject_id: str, agent_id: str, scope: ScopeLike) -> Decision:
        return self.policy.evaluate(self._subject(subject_id), agent_id, _as_scope(scope))

    def submit_request(
        self,
        subject_id: str,
        agent_id: str,
        scope: ScopeLike,
        reason: str,
        *,
        priority: RequestPriority | str = RequestPriority.NORMAL,
        supersedes: Optional[str] = None,
    ) -> AgentRequest:
        try:
            priority = RequestPriority(priority)
        except ValueError:
            raise InvalidArgumentError("Unknown request priority", priority=str(priority)) from None
        return self.workflow.submit(
            self._subject(subject_id),
            agent_id,
            _as_scope(scope),
            reason,
            priority=priority,
            supersedes=supersedes,
        )

    def resolve_request(
        self,
        reviewer_id: str,
        request_id: str,
        decision: ReviewDecision | str,
        notes: Optional[str] = None,
    ) -> AgentRequest:
        return self.workflow.resolve(self._subject(reviewer_id), request_id, decision, notes)

    def record_usage(self, grant_id: str, *, network_id: Optional[str] = None) -> PermissionGrant:
        return self.grants.record_usage(grant_id, network_id=network_id)

    def revoke_grant(self, grant_id: str, by_id: str) -> None:
        self.grants.revoke(grant_id, self._subject(by_id))

    def get_permission_summary(self, subject_id: str) -> PermissionSummary:
        return self.summaries.summarize(self._subject(subject_id))

    # ── Extended operations ─────────────────────────────

    def grant_direct(
        self,
        subject_id: str,
        agent_id: str,
        scope: ScopeLike,
        restrictions: Optional[GrantRestrictions] = None,
    ) -> PermissionGrant:
        """Evaluate and, on a direct-grant decision, create the grant.

        Raises:
            PermissionDeniedError: decision is Denied.
            FailedPreconditionError: decision requires approval (submit a
                request instead).
        """
        subject = self._subject(subject_id)
        scope = _as_scope(scope)
        self._direct_decision(subject, agent_id, scope)
        return self.grants.create(
            agent_id,
            subject.id,
            subject,
            restrictions_for_scope(scope, restrictions),
            organization_id=scope.organization_id,
        )

    def grant_to_network(
        self,
        admin_id: str,
        agent_id: str,
        organization_id: str,
        network_id: str,
        restrictions: Optional[GrantRestrictions] = None,
    ) -> PermissionGrant:
        """Grant an agent to every member of a network.

        Requires company_admin or higher within the organization, and an
        agent the admin could grant directly.

        Raises:
            NotFoundError: unknown organization.
            InvalidArgumentError: network is not part of the organization.
            PermissionDeniedError: admin outside the organization, or below company_admin.
            FailedPreconditionError: agent requires approval.
        """
        admin = self._subject(admin_id)
        scope = Scope(organization_id=organization_id, network_id=network_id)
        self._check_inherited_grant(admin, agent_id, scope, Role.COMPANY_ADMIN)
        return self.grants.create(
            agent_id,
            network_id,
            admin,
            restrictions_for_scope(scope, restrictions),
            grantee_type=GranteeType.NETWORK,
            organization_id=organization_id,
        )

    def grant_to_company(
        self,
        admin_id: str,
        agent_id: str,
        organization_id: str,
        restrictions: Optional[GrantRestrictions] = None,
    ) -> PermissionGrant:
        """Grant an agent to every member of an organization. Super admins only.

        Raises:
            NotFoundError: unknown organization.
            InvalidArgumentError: organization is a placeholder for unassigned users.
            PermissionDeniedError: admin below super_admin.
            FailedPreconditionError: agent requires approval.
        """
        admin = self._subject(admin_id)
        scope = Scope(organization_id=organization_id)
        self._check_inherited_grant(admin, agent_id, scope, Role.SUPER_ADMIN)
        return self.grants.create(
            agent_id,
            organization_id,
            admin,
            restrictions,
            grantee_type=GranteeType.COMPANY,
            organization_id=organization_id,
        )

    def _direct_decision(self, subject: Subject, agent_id: str, scope: Scope) -> Decision:
        decision = self.policy.evaluate(subject, agent_id, scope)
        if decision.is_denied:
            raise PermissionDeniedError(
                "Scope outside subject's own",
                subject_id=subject.id,
                agent_id=agent_id,
                reason=decision.reason,
            )
        if decision.requires_approval:
            raise FailedPreconditionError(
                "Agent requires approval",
                subject_id=subject.id,
                agent_id=agent_id,
                min_resolver_role=decision.min_resolver_role.value,
            )
        return decision

    def _check_inherited_grant(self, admin: Subject, agent_id: str, scope: Scope, min_role: Role) -> None:
        if self.scopes.is_unassigned(scope.organization_id):
            raise InvalidArgumentError(
                "Cannot grant to an unassigned organization",
                organization_id=scope.organization_id,
            )
        organization = self.identity.get_organization(scope.organization_id)
        if organization is None:
            raise NotFoundError("Unknown organization", organization_id=scope.organization_id)
        if scope.network_id and not organization.has_network(scope.network_id):
            raise InvalidArgumentError(
                "Network not in organization",
                organization_id=scope.organization_id,
                network_id=scope.network_id,
            )
        if not self.scopes.in_organization(admin, scope.organization_id):
            raise PermissionDeniedError(
                "Scope outside subject's own",
                subject_id=admin.id,
                organization_id=scope.organization_id,
            )
        if rank(admin.role) < rank(min_role):
            raise PermissionDeniedError(
                f"Requires {min_role.value} or higher",
                subject_id=admin.id,
                role=admin.role.value,
            )
        self._direct_decision(admin, agent_id, scope)

    def suspend_grant(self, grant_id: str, by_id: str) -> PermissionGrant:
        return self.grants.suspend(grant_id, self._subject(by_id))

    def reinstate_grant(self, grant_id: str, by_id: str) -> PermissionGrant:
        return self.grants.reinstate(grant_id, self._subject(by_id))

    def review_queue(self, reviewer_id: str) -> list[AgentRequest]:
        return self.workflow.review_queue(self._subject(reviewer_id))

    def approval_stats(self, organization_id: Optional[str] = None) -> ApprovalStats:
        return self.workflow.stats(organization_id)


__all__ = ["AgentAccessService"]
