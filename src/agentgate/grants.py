"""Permission grant lifecycle: creation, usage counting, suspension, revocation.

Expiry is lazy: a grant whose ``expires_at`` has passed reads back as
``expired`` even though the stored row still says ``active``. There is no
background sweep.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from .exceptions import (
    ExpiredError,
    FailedPreconditionError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
)
from .interfaces import TransactionalStore
from .logging import get_gate_logger
from .models import (
    GranteeType,
    GrantRestrictions,
    GrantSource,
    GrantStatus,
    PermissionGrant,
    Scope,
    Subject,
    utcnow,
)
from .permissions.roles import rank
from .permissions.scope import ScopeResolver

logger = get_gate_logger(__name__)


def effective_status(grant: PermissionGrant, now: datetime) -> GrantStatus:
    """Status as observed at ``now``: past-expiry active/suspended grants are expired."""
    if grant.status in (GrantStatus.ACTIVE, GrantStatus.SUSPENDED) and grant.is_past_expiry(now):
        return GrantStatus.EXPIRED
    return grant.status


def restrictions_for_scope(scope: Scope, restrictions: Optional[GrantRestrictions] = None) -> GrantRestrictions:
    """Restrictions for a grant made in ``scope``.

    A network-scoped grant is limited to that network unless the caller
    already set ``allowed_networks``.
    """
    restrictions = (restrictions or GrantRestrictions()).model_copy(deep=True)
    if scope.network_id and restrictions.allowed_networks is None:
        restrictions.allowed_networks = [scope.network_id]
    return restrictions


class GrantStore:
    """Owns every mutation of :class:`PermissionGrant` rows.

    Args:
        store: Transactional store holding the grants table.
        scopes: Scope resolver for the tenant check on administrative
            transitions.
        default_ttl_seconds: Expiry applied to grants created from an
            approved request that carry no explicit ``expires_at``.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: TransactionalStore,
        *,
        scopes: Optional[ScopeResolver] = None,
        default_ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._scopes = scopes or ScopeResolver()
        self._default_ttl = timedelta(seconds=default_ttl_seconds) if default_ttl_seconds else None
        self._clock = clock

    # ── Creation ────────────────────────────────────────

    def create(
        self,
        agent_id: str,
        grantee: str,
        granted_by: Subject,
        restrictions: Optional[GrantRestrictions] = None,
        *,
        grantee_type: GranteeType = GranteeType.USER,
        source: GrantSource = GrantSource.DIRECT,
        request_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> PermissionGrant:
        now = self._clock()
        restrictions = (restrictions or GrantRestrictions()).model_copy(deep=True)
        if (
            source is GrantSource.APPROVED_REQUEST
            and restrictions.expires_at is None
            and self._default_ttl is not None
        ):
            restrictions.expires_at = now + self._default_ttl

        grant = PermissionGrant(
            agent_id=agent_id,
            grantee_id=grantee,
            grantee_type=grantee_type,
            organization_id=organization_id,
            granted_by=granted_by.id,
            granted_by_role=granted_by.role,
            restrictions=restrictions,
            source=source,
            request_id=request_id,
            created_at=now,
        )
        with self._store.transaction():
            self._store.grants.save(grant)
        logger.info("Grant created for agent %s (%s)", agent_id, source.value, grant=grant)
        return grant

    # ── Reads ───────────────────────────────────────────

    def get(self, grant_id: str) -> PermissionGrant:
        """Grant with its effective status.

        Raises:
            NotFoundError: unknown grant.
        """
        grant = self._store.grants.get(grant_id)
        if grant is None:
            raise NotFoundError("Unknown grant", grant_id=grant_id)
        return self._observed(grant, self._clock())

    def for_grantee(
        self,
        grantee_id: str,
        *,
        grantee_type: Optional[GranteeType] = None,
        active_only: bool = False,
    ) -> list[PermissionGrant]:
        now = self._clock()
        grants = [
            self._observed(g, now)
            for g in self._store.grants.list_for_grantee(grantee_id)
            if grantee_type is None or g.grantee_type is grantee_type
        ]
        if active_only:
            grants = [g for g in grants if g.status is GrantStatus.ACTIVE]
        return grants

    def for_request(self, request_id: str) -> list[PermissionGrant]:
        now = self._clock()
        return [self._observed(g, now) for g in self._store.grants.list_for_request(request_id)]

    @staticmethod
    def _observed(grant: PermissionGrant, now: datetime) -> PermissionGrant:
        status = effective_status(grant, now)
        if status is grant.status:
            return grant
        return grant.model_copy(update={"status": status})

    # ── Usage ───────────────────────────────────────────

    def record_usage(self, grant_id: str, *, network_id: Optional[str] = None) -> PermissionGrant:
        """Count one use of a grant. Serialized per grant by the store transaction.

        Raises:
            NotFoundError: unknown grant.
            PermissionDeniedError: grant suspended/revoked, or ``network_id``
                outside ``allowed_networks``.
            ExpiredError: past ``expires_at``.
            LimitExceededError: ``usage_count`` already at ``max_usage``.
        """
        with self._store.transaction():
            grant = self._store.grants.get(grant_id)
            if grant is None:
                raise NotFoundError("Unknown grant", grant_id=grant_id)

            now = self._clock()
            restrictions = grant.restrictions

            if grant.status is GrantStatus.EXPIRED or grant.is_past_expiry(now):
                raise ExpiredError(grant_id=grant_id, expires_at=restrictions.expires_at)
            if grant.status is not GrantStatus.ACTIVE:
                raise PermissionDeniedError("Grant is not active", grant_id=grant_id, status=grant.status.value)
            if restrictions.max_usage is not None and restrictions.usage_count >= restrictions.max_usage:
                raise LimitExceededError(
                    grant_id=grant_id,
                    max_usage=restrictions.max_usage,
                    usage_count=restrictions.usage_count,
                )
            if (
                network_id is not None
                and restrictions.allowed_networks is not None
                and network_id not in restrictions.allowed_networks
            ):
                raise PermissionDeniedError("Network not allowed for grant", grant_id=grant_id, network_id=network_id)

            restrictions.usage_count += 1
            grant.last_used_at = now
            self._store.grants.save(grant)

        logger.debug("Grant used (%d)", grant.restrictions.usage_count, grant=grant)
        return grant

    # ── Administrative transitions ──────────────────────

    def _load_for_admin(self, grant_id: str, by: Subject) -> PermissionGrant:
        grant = self._store.grants.get(grant_id)
        if grant is None:
            raise NotFoundError("Unknown grant", grant_id=grant_id)
        if rank(by.role) < rank(grant.granted_by_role):
            raise PermissionDeniedError(
                "Role below the granting role",
                grant_id=grant_id,
                subject_id=by.id,
                role=by.role.value,
                granted_by_role=grant.granted_by_role.value,
            )
        if grant.organization_id is not None and not self._scopes.in_organization(by, grant.organization_id):
            raise PermissionDeniedError(
                "Grant belongs to another organization",
                grant_id=grant_id,
                subject_id=by.id,
                organization_id=grant.organization_id,
            )
        return grant

    def revoke(self, grant_id: str, by: Subject) -> None:
        """Permanently revoke a grant. Revoking twice is a no-op.

        Raises:
            NotFoundError: unknown grant.
            PermissionDeniedError: ``by`` ranks below ``granted_by_role``, or
                is outside the grant's organization.
        """
        with self._store.transaction():
            grant = self._load_for_admin(grant_id, by)
            if grant.status is GrantStatus.REVOKED:
                return
            grant.status = GrantStatus.REVOKED
            self._store.grants.save(grant)
        logger.info("Grant revoked by %s", by.id, grant=grant)

    def suspend(self, grant_id: str, by: Subject) -> PermissionGrant:
        """Temporarily disable a grant.

        Raises:
            FailedPreconditionError: grant is revoked.
        """
        with self._store.transaction():
            grant = self._load_for_admin(grant_id, by)
            if grant.status is GrantStatus.REVOKED:
                raise FailedPreconditionError("Revoked grants cannot be suspended", grant_id=grant_id)
            grant.status = GrantStatus.SUSPENDED
            self._store.grants.save(grant)
        logger.info("Grant suspended by %s", by.id, grant=grant)
        return self._observed(grant, self._clock())

    def reinstate(self, grant_id: str, by: Subject) -> PermissionGrant:
        """Return a suspended grant to active.

        Raises:
            FailedPreconditionError: grant is revoked.
        """
        with self._store.transaction():
            grant = self._load_for_admin(grant_id, by)
            if grant.status is GrantStatus.REVOKED:
                raise FailedPreconditionError("Revoked grants cannot be reinstated", grant_id=grant_id)
            grant.status = GrantStatus.ACTIVE
            self._store.grants.save(grant)
        logger.info("Grant reinstated by %s", by.id, grant=grant)
        return self._observed(grant, self._clock())


__all__ = [
    "GrantStore",
    "effective_status",
    "restrictions_for_scope",
]
