"""End-to-end tests through the id-based service boundary."""

from __future__ import annotations

import pytest

from agentgate import (
    AgentAccessService,
    DecisionKind,
    FailedPreconditionError,
    GateConfig,
    GranteeType,
    GrantRestrictions,
    GrantStatus,
    InMemoryIdentityProvider,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    RequestStatus,
    Role,
    Subject,
)

ACME = {"organization_id": "acme"}
EAST = {"organization_id": "acme", "network_id": "acme-east"}


class TestEvaluate:
    def test_accepts_scope_mapping(self, service: AgentAccessService) -> None:
        """A plain mapping is accepted as a scope."""
        decision = service.evaluate_assignment("u-east", "prem-1", ACME)
        assert decision.kind is DecisionKind.APPROVAL_REQUIRED
        assert decision.min_resolver_role is Role.NETWORK_ADMIN

    def test_invalid_scope(self, service: AgentAccessService) -> None:
        """A scope without organization_id is rejected."""
        with pytest.raises(InvalidArgumentError, match="Invalid scope"):
            service.evaluate_assignment("u-east", "prem-1", {"network_id": "acme-east"})

    def test_unknown_subject(self, service: AgentAccessService) -> None:
        """Unknown subject ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            service.evaluate_assignment("nobody", "prem-1", ACME)

    def test_subject_network_outside_organization(self, service, identity) -> None:
        """A subject whose network belongs to another organization is rejected."""
        identity.add_subject(Subject(id="u-stray", organization_id="acme", network_id="globex-hq"))
        with pytest.raises(InvalidArgumentError, match="not part of its organization"):
            service.evaluate_assignment("u-stray", "free-1", ACME)


class TestRequestLifecycle:
    def test_submit_approve_use_revoke(self, service: AgentAccessService, sink) -> None:
        """Submit, approve, use and revoke a premium grant end to end."""
        request = service.submit_request("u-east", "prem-1", EAST, "quarterly analysis", priority="high")
        assert service.get_permission_summary("u-east").pending_requests == [request]

        resolved = service.resolve_request("na-east", request.id, "approve", "go ahead")
        assert resolved.status is RequestStatus.APPROVED

        summary = service.get_permission_summary("u-east")
        assert summary.pending_requests == []
        assert [g.id for g in summary.active_grants] == [resolved.grant_id]

        used = service.record_usage(resolved.grant_id, network_id="acme-east")
        assert used.restrictions.usage_count == 1

        service.revoke_grant(resolved.grant_id, "ca-acme")
        assert service.get_permission_summary("u-east").active_grants == []
        assert len(sink.events) == 1

    def test_unknown_priority(self, service: AgentAccessService) -> None:
        """An unknown priority string is an invalid argument."""
        with pytest.raises(InvalidArgumentError, match="priority"):
            service.submit_request("u-east", "prem-1", ACME, "x", priority="asap")

    def test_review_queue_and_stats(self, service: AgentAccessService) -> None:
        """Enterprise requests queue for super admins only and count as pending."""
        request = service.submit_request("u-east", "ent-1", ACME, "contracts")
        assert [r.id for r in service.review_queue("sa-1")] == [request.id]
        assert service.review_queue("ca-acme") == []
        assert service.approval_stats("acme").pending == 1

    def test_revoke_from_other_organization(self, service: AgentAccessService) -> None:
        """A company admin of another tenant cannot revoke the grant."""
        request = service.submit_request("u-east", "prem-1", EAST, "x")
        resolved = service.resolve_request("na-east", request.id, "approve")
        with pytest.raises(PermissionDeniedError, match="another organization"):
            service.revoke_grant(resolved.grant_id, "ca-globex")
        assert service.grants.get(resolved.grant_id).status is GrantStatus.ACTIVE

        service.revoke_grant(resolved.grant_id, "sa-1")
        assert service.grants.get(resolved.grant_id).status is GrantStatus.REVOKED


class TestGrantDirect:
    def test_free_agent(self, service: AgentAccessService) -> None:
        """A user self-grants a free agent."""
        grant = service.grant_direct("u-east", "free-1", EAST)
        assert grant.grantee_id == "u-east"
        assert grant.granted_by == "u-east"
        assert grant.granted_by_role is Role.USER
        assert grant.organization_id == "acme"
        assert service.get_permission_summary("u-east").active_grants == [grant]

    def test_network_scope_restricts_networks(self, service: AgentAccessService) -> None:
        """A grant made in a network scope is limited to that network."""
        grant = service.grant_direct("u-east", "free-1", EAST)
        assert grant.restrictions.allowed_networks == ["acme-east"]
        with pytest.raises(PermissionDeniedError, match="Network not allowed"):
            service.record_usage(grant.id, network_id="acme-west")

    def test_explicit_networks_kept(self, service: AgentAccessService) -> None:
        """Caller-supplied allowed_networks are not overridden."""
        restrictions = GrantRestrictions(allowed_networks=["acme-east", "acme-west"], max_usage=5)
        grant = service.grant_direct("na-east", "prem-1", EAST, restrictions)
        assert grant.restrictions.allowed_networks == ["acme-east", "acme-west"]
        assert grant.restrictions.max_usage == 5

    def test_organization_scope_unrestricted(self, service: AgentAccessService) -> None:
        """An organization-wide grant carries no network restriction."""
        grant = service.grant_direct("u-east", "free-1", ACME)
        assert grant.restrictions.allowed_networks is None

    def test_requires_approval(self, service: AgentAccessService) -> None:
        """Premium agents need approval for plain users."""
        with pytest.raises(FailedPreconditionError, match="requires approval"):
            service.grant_direct("u-east", "prem-1", ACME)

    def test_out_of_scope(self, service: AgentAccessService) -> None:
        """Granting into another organization is denied."""
        with pytest.raises(PermissionDeniedError):
            service.grant_direct("u-east", "free-1", {"organization_id": "globex"})

    def test_suspend_reinstate(self, service: AgentAccessService) -> None:
        """A company admin can suspend and reinstate; a user cannot."""
        grant = service.grant_direct("na-east", "prem-1", EAST)
        assert service.suspend_grant(grant.id, "ca-acme").status is GrantStatus.SUSPENDED
        assert service.reinstate_grant(grant.id, "ca-acme").status is GrantStatus.ACTIVE
        with pytest.raises(PermissionDeniedError):
            service.suspend_grant(grant.id, "u-east")

    def test_suspend_from_other_organization(self, service: AgentAccessService) -> None:
        """Suspension is refused for an admin outside the grant's organization."""
        grant = service.grant_direct("na-east", "prem-1", EAST)
        with pytest.raises(PermissionDeniedError, match="another organization"):
            service.suspend_grant(grant.id, "ca-globex")


class TestGrantToNetwork:
    def test_company_admin(self, service: AgentAccessService) -> None:
        """A company admin grants an agent to one of its networks."""
        grant = service.grant_to_network("ca-acme", "prem-1", "acme", "acme-east")
        assert grant.grantee_id == "acme-east"
        assert grant.grantee_type is GranteeType.NETWORK
        assert grant.organization_id == "acme"
        assert grant.granted_by_role is Role.COMPANY_ADMIN
        assert grant.restrictions.allowed_networks == ["acme-east"]

    def test_members_inherit(self, service: AgentAccessService) -> None:
        """Network members see the grant in their summary; other networks do not."""
        grant = service.grant_to_network("ca-acme", "free-1", "acme", "acme-east")
        assert service.get_permission_summary("u-east").active_grants == [grant]
        assert service.get_permission_summary("na-east").active_grants == [grant]
        assert service.get_permission_summary("u-west").active_grants == []
        assert service.get_permission_summary("ca-acme").active_grants == []

    def test_network_admin_denied(self, service: AgentAccessService) -> None:
        """Network admins cannot grant to a whole network."""
        with pytest.raises(PermissionDeniedError, match="company_admin"):
            service.grant_to_network("na-east", "free-1", "acme", "acme-east")

    def test_other_organization_denied(self, service: AgentAccessService) -> None:
        """A company admin cannot grant to another tenant's network."""
        with pytest.raises(PermissionDeniedError):
            service.grant_to_network("ca-globex", "free-1", "acme", "acme-east")

    def test_unknown_network(self, service: AgentAccessService) -> None:
        """The network must belong to the organization."""
        with pytest.raises(InvalidArgumentError, match="Network not in organization"):
            service.grant_to_network("ca-acme", "free-1", "acme", "globex-hq")

    def test_unknown_organization(self, service: AgentAccessService) -> None:
        """Unknown organizations raise NotFoundError."""
        with pytest.raises(NotFoundError):
            service.grant_to_network("sa-1", "free-1", "initech", "initech-1")

    def test_enterprise_requires_approval(self, service: AgentAccessService) -> None:
        """Enterprise agents are never granted to a network directly."""
        with pytest.raises(FailedPreconditionError, match="requires approval"):
            service.grant_to_network("sa-1", "ent-1", "acme", "acme-east")

    def test_revoked_grant_leaves_summary(self, service: AgentAccessService) -> None:
        """Revoking the network grant removes it from members' summaries."""
        grant = service.grant_to_network("ca-acme", "free-1", "acme", "acme-east")
        service.revoke_grant(grant.id, "ca-acme")
        assert service.get_permission_summary("u-east").active_grants == []


class TestGrantToCompany:
    def test_super_admin(self, service: AgentAccessService) -> None:
        """A super admin grants an agent to a whole organization."""
        grant = service.grant_to_company("sa-1", "prem-1", "acme")
        assert grant.grantee_id == "acme"
        assert grant.grantee_type is GranteeType.COMPANY
        assert grant.restrictions.allowed_networks is None

    def test_members_inherit(self, service: AgentAccessService) -> None:
        """Every member of the organization sees the grant, other tenants do not."""
        grant = service.grant_to_company("sa-1", "free-1", "acme")
        for subject_id in ("u-east", "u-west", "ca-acme"):
            assert service.get_permission_summary(subject_id).active_grants == [grant]
        assert service.get_permission_summary("ca-globex").active_grants == []

    def test_company_admin_denied(self, service: AgentAccessService) -> None:
        """Company admins cannot grant to the whole organization."""
        with pytest.raises(PermissionDeniedError, match="super_admin"):
            service.grant_to_company("ca-acme", "free-1", "acme")

    def test_unassigned_organization(self, service: AgentAccessService) -> None:
        """Placeholder organizations cannot receive company grants."""
        with pytest.raises(InvalidArgumentError, match="unassigned"):
            service.grant_to_company("sa-1", "free-1", "unassigned")

    def test_enterprise_requires_approval(self, service: AgentAccessService) -> None:
        """Enterprise agents are never granted to a company directly."""
        with pytest.raises(FailedPreconditionError):
            service.grant_to_company("sa-1", "ent-1", "acme")

    def test_summary_order(self, service: AgentAccessService) -> None:
        """Own grants come first, then network grants, then company grants."""
        company = service.grant_to_company("sa-1", "prem-1", "acme")
        network = service.grant_to_network("ca-acme", "free-1", "acme", "acme-east")
        own = service.grant_direct("u-east", "free-1", EAST)
        assert service.get_permission_summary("u-east").active_grants == [own, network, company]


class TestConfiguration:
    def test_notifications_disabled(self, identity, catalog, sink) -> None:
        """Disabling notifications suppresses the sink."""
        service = AgentAccessService(
            identity, catalog, notifier=sink, config=GateConfig(notifications_enabled=False)
        )
        request = service.submit_request("u-east", "prem-1", ACME, "x")
        service.resolve_request("na-east", request.id, "deny")
        assert sink.events == []

    def test_custom_unassigned_sentinel(self, catalog) -> None:
        """Configured placeholder organization ids deny all assignments."""
        identity = InMemoryIdentityProvider([Subject(id="u-limbo", organization_id="limbo")])
        service = AgentAccessService(identity, catalog, config=GateConfig(unassigned_organization_ids=["limbo"]))
        decision = service.evaluate_assignment("u-limbo", "free-1", {"organization_id": "limbo"})
        assert decision.is_denied

    def test_grant_ttl(self, identity, catalog, clock) -> None:
        """Approved grants expire after the configured TTL."""
        service = AgentAccessService(
            identity, catalog, config=GateConfig(default_grant_ttl_seconds=60), clock=clock
        )
        request = service.submit_request("u-east", "prem-1", ACME, "x")
        resolved = service.resolve_request("na-east", request.id, "approve")
        clock.advance(minutes=2)
        assert service.get_permission_summary("u-east").active_grants == []
        assert service.grants.get(resolved.grant_id).status is GrantStatus.EXPIRED
