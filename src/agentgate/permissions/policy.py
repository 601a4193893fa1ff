"""Assignment policy: (subject, agent tier, target scope) → decision.

Provides:
- ``TierPolicy`` — per-tier rule (who may self-grant, who must approve).
- ``DEFAULT_TIER_POLICIES`` — the authoritative tier table.
- ``AssignmentPolicy`` — pure evaluator combining catalog, scope and roles.

Controls CAN (scope containment) before SHOULD (tier rule): a subject never
provisions outside its own scope, even for a free agent.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from ..models import Decision, Role, Scope, Subject, Tier
from .catalog import AgentCatalog
from .roles import rank, satisfies
from .scope import ScopeResolver

logger = logging.getLogger(__name__)


class DecisionReason:
    """Machine-readable reason codes carried on :class:`Decision`."""

    OUT_OF_SCOPE = "out_of_scope"
    SELF_SERVICE = "self_service"
    ROLE_SUFFICIENT = "role_sufficient"
    ESCALATION_REQUIRED = "escalation_required"


class TierPolicy:
    """Assignment rule for one agent tier.

    Args:
        tier: Tier this policy applies to.
        direct_grant_role: Minimum role that may grant directly.
            ``None`` means nobody may (always escalates).
        resolver_role: Role a pending request is addressed to when the
            subject cannot grant directly.

    Example::

        premium = TierPolicy(
            tier=Tier.PREMIUM,
            direct_grant_role=Role.NETWORK_ADMIN,
            resolver_role=Role.NETWORK_ADMIN,
        )
    """

    __slots__ = ("tier", "direct_grant_role", "resolver_role")

    def __init__(
        self,
        *,
        tier: Tier,
        direct_grant_role: Optional[Role],
        resolver_role: Role,
    ) -> None:
        self.tier = tier
        self.direct_grant_role = direct_grant_role
        self.resolver_role = resolver_role

    def decide(self, subject_role: Role) -> Decision:
        if self.direct_grant_role is not None and satisfies(subject_role, self.direct_grant_role):
            if rank(self.direct_grant_role) == 0:
                return Decision.direct_grant(DecisionReason.SELF_SERVICE)
            return Decision.direct_grant(DecisionReason.ROLE_SUFFICIENT)
        return Decision.approval_required(self.resolver_role, DecisionReason.ESCALATION_REQUIRED)

    def __repr__(self) -> str:
        return (
            f"TierPolicy(tier={self.tier.value!r}, direct_grant_role={self.direct_grant_role!r}, "
            f"resolver_role={self.resolver_role!r})"
        )


# ── Default Tier Policies ──────────────────────────────
# Enterprise provisioning is never self-approved: no role grants it directly.

DEFAULT_TIER_POLICIES: dict[Tier, TierPolicy] = {
    Tier.FREE: TierPolicy(
        tier=Tier.FREE,
        direct_grant_role=Role.USER,  # self-service
        resolver_role=Role.USER,
    ),
    Tier.PREMIUM: TierPolicy(
        tier=Tier.PREMIUM,
        direct_grant_role=Role.NETWORK_ADMIN,
        resolver_role=Role.NETWORK_ADMIN,
    ),
    Tier.ENTERPRISE: TierPolicy(
        tier=Tier.ENTERPRISE,
        direct_grant_role=None,
        resolver_role=Role.SUPER_ADMIN,
    ),
}


class AssignmentPolicy:
    """Evaluates whether a subject can obtain an agent in a target scope.

    Args:
        catalog: Agent catalog (tier lookup).
        scopes: Scope resolver (containment).
        tier_policies: Optional overrides merged over
            :data:`DEFAULT_TIER_POLICIES`.
    """

    def __init__(
        self,
        catalog: AgentCatalog,
        scopes: ScopeResolver | None = None,
        tier_policies: Mapping[Tier, TierPolicy] | None = None,
    ) -> None:
        self.catalog = catalog
        self.scopes = scopes or ScopeResolver()
        self.tier_policies: dict[Tier, TierPolicy] = dict(DEFAULT_TIER_POLICIES)
        if tier_policies:
            self.tier_policies.update(tier_policies)

    def evaluate(self, subject: Subject, agent_id: str, target_scope: Scope) -> Decision:
        """Decide Denied / DirectGrant / ApprovalRequired. No side effects.

        Raises:
            NotFoundError: unknown agent.
        """
        tier = self.catalog.tier_of(agent_id)

        if not self.scopes.contains(subject, target_scope):
            logger.debug(
                "Denied %s for subject %s: scope %s not contained",
                agent_id,
                subject.id,
                target_scope,
            )
            return Decision.denied(DecisionReason.OUT_OF_SCOPE)

        return self.tier_policies[tier].decide(subject.role)


__all__ = [
    "DEFAULT_TIER_POLICIES",
    "AssignmentPolicy",
    "DecisionReason",
    "TierPolicy",
]
