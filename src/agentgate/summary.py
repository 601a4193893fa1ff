"""Read-only view of a subject's effective permissions.

A subject holds an agent through its own grant, a grant to its network, or
a grant to its organization. All three count as effective permissions.
"""

from __future__ import annotations

from typing import Optional

from .grants import GrantStore
from .models import GranteeType, PermissionGrant, PermissionSummary, Subject
from .permissions.scope import ScopeResolver
from .workflow import RequestWorkflow


class PermissionSummarizer:
    """Combines active user, network and company grants and pending requests for one subject."""

    def __init__(
        self,
        grants: GrantStore,
        workflow: RequestWorkflow,
        scopes: Optional[ScopeResolver] = None,
    ) -> None:
        self._grants = grants
        self._workflow = workflow
        self._scopes = scopes or ScopeResolver()

    def effective_grants(self, subject: Subject) -> list[PermissionGrant]:
        """Active grants reaching the subject, own grants first, then network, then company."""
        grants = self._grants.for_grantee(subject.id, grantee_type=GranteeType.USER, active_only=True)
        if self._scopes.is_unassigned(subject.organization_id):
            return grants

        inherited: list[PermissionGrant] = []
        if subject.network_id:
            inherited.extend(
                self._grants.for_grantee(subject.network_id, grantee_type=GranteeType.NETWORK, active_only=True)
            )
        inherited.extend(
            self._grants.for_grantee(subject.organization_id, grantee_type=GranteeType.COMPANY, active_only=True)
        )
        # Network ids are only meaningful within their own organization
        grants.extend(g for g in inherited if g.organization_id in (None, subject.organization_id))
        return grants

    def summarize(self, subject: Subject) -> PermissionSummary:
        return PermissionSummary(
            subject_id=subject.id,
            active_grants=self.effective_grants(subject),
            pending_requests=self._workflow.pending_for(subject.id),
        )


__all__ = ["PermissionSummarizer"]
