"""Core data models for agentgate.

Pydantic models for subjects, tenants, agents, grants and requests.
Subjects, organizations and agents are owned by external systems and only
read here; grants and requests are owned and mutated by the core.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex}"


# ── Enumerations ────────────────────────────────────────


class Role(str, Enum):
    """Subject roles. Ordering lives in :mod:`agentgate.permissions.roles`."""

    USER = "user"
    NETWORK_ADMIN = "network_admin"
    COMPANY_ADMIN = "company_admin"
    SUPER_ADMIN = "super_admin"
    CREATOR = "creator"  # Orthogonal: gates agent submission only


class Tier(str, Enum):
    """Agent provisioning class."""

    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class GranteeType(str, Enum):
    USER = "user"
    NETWORK = "network"
    COMPANY = "company"


class GrantStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"
    REVOKED = "revoked"


class GrantSource(str, Enum):
    DIRECT = "direct"
    APPROVED_REQUEST = "approved_request"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class RequestPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    DENY = "deny"


class DecisionKind(str, Enum):
    DENIED = "denied"
    DIRECT_GRANT = "direct_grant"
    APPROVAL_REQUIRED = "approval_required"


# ── Identity & tenancy ──────────────────────────────────


class Subject(BaseModel):
    """The acting user."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role = Role.USER
    organization_id: str
    network_id: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None


class Network(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    organization_id: str
    name: str


class Organization(BaseModel):
    """A tenant with its networks."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    networks: list[Network] = Field(default_factory=list)

    @model_validator(mode="after")
    def _networks_belong_here(self) -> "Organization":
        for network in self.networks:
            if network.organization_id != self.id:
                raise ValueError(
                    f"Network {network.id} references organization {network.organization_id}, expected {self.id}"
                )
        return self

    def has_network(self, network_id: str) -> bool:
        return any(n.id == network_id for n in self.networks)


class Scope(BaseModel):
    """An (organization, network?) pair."""

    model_config = ConfigDict(frozen=True)

    organization_id: str
    network_id: Optional[str] = None


# ── Catalog ─────────────────────────────────────────────


class Agent(BaseModel):
    """Catalog entry. Tier is immutable; re-tiering publishes a new version."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    tier: Tier
    category: str = "general"
    version: str = "1.0.0"


# ── Grants ──────────────────────────────────────────────


class GrantRestrictions(BaseModel):
    max_usage: Optional[int] = Field(default=None, ge=0)
    usage_count: int = Field(default=0, ge=0)
    expires_at: Optional[datetime] = None
    allowed_networks: Optional[list[str]] = None


class PermissionGrant(BaseModel):
    """An active (or formerly active) right to use an agent."""

    id: str = Field(default_factory=lambda: new_id("grant"))
    agent_id: str
    grantee_id: str
    grantee_type: GranteeType = GranteeType.USER
    organization_id: Optional[str] = None  # tenant the grant belongs to
    granted_by: str
    granted_by_role: Role
    restrictions: GrantRestrictions = Field(default_factory=GrantRestrictions)
    status: GrantStatus = GrantStatus.ACTIVE
    source: GrantSource = GrantSource.DIRECT
    request_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_used_at: Optional[datetime] = None

    def is_past_expiry(self, now: datetime) -> bool:
        expires_at = self.restrictions.expires_at
        return expires_at is not None and now > expires_at


# ── Requests ────────────────────────────────────────────


class AgentRequest(BaseModel):
    """An approval request. Never deleted; terminal states are kept for audit."""

    id: str = Field(default_factory=lambda: new_id("req"))
    requester_id: str
    agent_id: str
    scope: Scope
    status: RequestStatus = RequestStatus.PENDING
    request_reason: str
    resolver_role_required: Role
    priority: RequestPriority = RequestPriority.NORMAL
    supersedes: Optional[str] = None
    requested_at: datetime = Field(default_factory=utcnow)
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    grant_id: Optional[str] = None


# ── Decisions & summaries ───────────────────────────────


class Decision(BaseModel):
    """Outcome of an assignment evaluation.

    ``reason`` is a machine code (``out_of_scope``, ``self_service``,
    ``role_sufficient``, ``escalation_required``).
    """

    model_config = ConfigDict(frozen=True)

    kind: DecisionKind
    min_resolver_role: Optional[Role] = None
    reason: str = ""

    @classmethod
    def denied(cls, reason: str) -> "Decision":
        return cls(kind=DecisionKind.DENIED, reason=reason)

    @classmethod
    def direct_grant(cls, reason: str) -> "Decision":
        return cls(kind=DecisionKind.DIRECT_GRANT, reason=reason)

    @classmethod
    def approval_required(cls, role: Role, reason: str = "escalation_required") -> "Decision":
        return cls(kind=DecisionKind.APPROVAL_REQUIRED, min_resolver_role=role, reason=reason)

    @property
    def is_denied(self) -> bool:
        return self.kind is DecisionKind.DENIED

    @property
    def is_direct_grant(self) -> bool:
        return self.kind is DecisionKind.DIRECT_GRANT

    @property
    def requires_approval(self) -> bool:
        return self.kind is DecisionKind.APPROVAL_REQUIRED


class PermissionSummary(BaseModel):
    subject_id: str
    active_grants: list[PermissionGrant] = Field(default_factory=list)
    pending_requests: list[AgentRequest] = Field(default_factory=list)


class ApprovalStats(BaseModel):
    pending: int = 0
    approved: int = 0
    denied: int = 0
    total_requests: int = 0
    avg_response_hours: float = 0.0
    oldest_pending_days: float = 0.0


class NotificationEvent(BaseModel):
    """Payload handed to the notification sink."""

    model_config = ConfigDict(frozen=True)

    kind: str  # "request_approved" | "request_denied"
    request_id: str
    agent_id: str
    reviewed_by: Optional[str] = None
    grant_id: Optional[str] = None
    occurred_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "Agent",
    "AgentRequest",
    "ApprovalStats",
    "Decision",
    "DecisionKind",
    "GrantRestrictions",
    "GrantSource",
    "GrantStatus",
    "GranteeType",
    "Network",
    "NotificationEvent",
    "Organization",
    "PermissionGrant",
    "PermissionSummary",
    "RequestPriority",
    "RequestStatus",
    "ReviewDecision",
    "Role",
    "Scope",
    "Subject",
    "Tier",
    "new_id",
    "utcnow",
]
