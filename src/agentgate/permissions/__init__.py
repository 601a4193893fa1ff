"""Authorization primitives for agent provisioning.

Defines:
- Role ranks and the rank-based ``satisfies`` predicate
- ScopeResolver: organization / network containment
- AgentCatalog: agent id → tier / category
- AssignmentPolicy: tier table and the evaluate() decision
"""

from .catalog import AgentCatalog
from .policy import (
    DEFAULT_TIER_POLICIES,
    AssignmentPolicy,
    DecisionReason,
    TierPolicy,
)
from .roles import (
    ADMIN_ROLES,
    ROLE_RANKS,
    is_admin,
    is_creator,
    max_role,
    rank,
    satisfies,
)
from .scope import ScopeResolver

__all__ = [
    "ADMIN_ROLES",
    "DEFAULT_TIER_POLICIES",
    "ROLE_RANKS",
    "AgentCatalog",
    "AssignmentPolicy",
    "DecisionReason",
    "ScopeResolver",
    "TierPolicy",
    "is_admin",
    "is_creator",
    "max_role",
    "rank",
    "satisfies",
]
