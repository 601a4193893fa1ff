"""Organization / network scope containment.

A higher-scope role acts with authority over every scope it contains:
``super_admin`` over every organization, ``company_admin`` over every network
of its organization, ``network_admin`` and ``user`` over their own network.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..config import DEFAULT_UNASSIGNED_ORGANIZATIONS
from ..exceptions import InvalidArgumentError
from ..models import Organization, Role, Scope, Subject

_ORG_WIDE_ROLES = frozenset({Role.COMPANY_ADMIN, Role.SUPER_ADMIN})


class ScopeResolver:
    """Decides whether a subject's membership contains a target scope.

    Args:
        unassigned_organization_ids: Sentinel organization ids meaning
            "no organization scope". Subjects carrying one satisfy no
            organization-scoped check.
    """

    __slots__ = ("unassigned_organization_ids",)

    def __init__(self, unassigned_organization_ids: Optional[Iterable[str]] = None) -> None:
        if unassigned_organization_ids is None:
            unassigned_organization_ids = DEFAULT_UNASSIGNED_ORGANIZATIONS
        self.unassigned_organization_ids = frozenset(unassigned_organization_ids)

    def is_unassigned(self, organization_id: Optional[str]) -> bool:
        return not organization_id or organization_id in self.unassigned_organization_ids

    def in_organization(self, subject: Subject, organization_id: str) -> bool:
        if subject.role is Role.SUPER_ADMIN:
            return True
        if self.is_unassigned(organization_id):
            return False
        return subject.organization_id == organization_id

    def in_network(self, subject: Subject, organization_id: str, network_id: str) -> bool:
        if not self.in_organization(subject, organization_id):
            return False
        if subject.role in _ORG_WIDE_ROLES:
            return True
        return subject.network_id is not None and subject.network_id == network_id

    def contains(self, subject: Subject, scope: Scope) -> bool:
        """Dispatch to :meth:`in_network` or :meth:`in_organization`."""
        if scope.network_id:
            return self.in_network(subject, scope.organization_id, scope.network_id)
        return self.in_organization(subject, scope.organization_id)

    def validate_subject(self, subject: Subject, organization: Optional[Organization]) -> None:
        """Check that a subject's network belongs to its organization.

        Raises:
            InvalidArgumentError: network set without an organization, or
                network not part of the subject's organization.
        """
        if subject.network_id is None:
            return
        if organization is None or organization.id != subject.organization_id:
            raise InvalidArgumentError(
                "Subject network has no matching organization",
                subject_id=subject.id,
                network_id=subject.network_id,
            )
        if not organization.has_network(subject.network_id):
            raise InvalidArgumentError(
                "Subject network is not part of its organization",
                subject_id=subject.id,
                organization_id=organization.id,
                network_id=subject.network_id,
            )

    def __repr__(self) -> str:
        return f"ScopeResolver(unassigned_organization_ids={sorted(self.unassigned_organization_ids)!r})"


__all__ = ["ScopeResolver"]
