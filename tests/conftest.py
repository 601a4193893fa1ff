"""Shared fixtures: two tenants, one subject per role, a three-tier catalog."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from agentgate import (
    Agent,
    AgentAccessService,
    AgentCatalog,
    AssignmentPolicy,
    GrantStore,
    InMemoryIdentityProvider,
    InMemoryStore,
    Network,
    Organization,
    RequestWorkflow,
    Role,
    ScopeResolver,
    Subject,
    Tier,
)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingSink:
    """Notification sink that remembers every event."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[tuple[str, object]] = []

    def notify(self, user_id, event) -> None:
        self.events.append((user_id, event))
        if self.fail:
            raise ConnectionError("mail relay down")


ACME = Organization(
    id="acme",
    name="Acme Corp",
    networks=[
        Network(id="acme-east", organization_id="acme", name="East"),
        Network(id="acme-west", organization_id="acme", name="West"),
    ],
)
GLOBEX = Organization(
    id="globex",
    name="Globex",
    networks=[Network(id="globex-hq", organization_id="globex", name="HQ")],
)

SUBJECTS = {
    "user": Subject(id="u-east", role=Role.USER, organization_id="acme", network_id="acme-east"),
    "user_west": Subject(id="u-west", role=Role.USER, organization_id="acme", network_id="acme-west"),
    "network_admin": Subject(id="na-east", role=Role.NETWORK_ADMIN, organization_id="acme", network_id="acme-east"),
    "network_admin_west": Subject(
        id="na-west", role=Role.NETWORK_ADMIN, organization_id="acme", network_id="acme-west"
    ),
    "company_admin": Subject(id="ca-acme", role=Role.COMPANY_ADMIN, organization_id="acme"),
    "company_admin_globex": Subject(id="ca-globex", role=Role.COMPANY_ADMIN, organization_id="globex"),
    "super_admin": Subject(id="sa-1", role=Role.SUPER_ADMIN, organization_id="platform"),
    "super_admin_2": Subject(id="sa-2", role=Role.SUPER_ADMIN, organization_id="platform"),
    "unassigned": Subject(id="u-new", role=Role.USER, organization_id="unassigned"),
    "creator": Subject(id="cr-1", role=Role.CREATOR, organization_id="acme"),
}

AGENTS = [
    Agent(id="free-1", name="Summarizer", tier=Tier.FREE, category="productivity"),
    Agent(id="prem-1", name="Analyst", tier=Tier.PREMIUM, category="analytics"),
    Agent(id="ent-1", name="Contract Review", tier=Tier.ENTERPRISE, category="legal"),
]


@pytest.fixture
def subjects() -> dict[str, Subject]:
    return dict(SUBJECTS)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def catalog() -> AgentCatalog:
    return AgentCatalog(AGENTS)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def policy(catalog: AgentCatalog) -> AssignmentPolicy:
    return AssignmentPolicy(catalog, ScopeResolver())


@pytest.fixture
def grants(store: InMemoryStore, clock: FakeClock) -> GrantStore:
    return GrantStore(store, clock=clock)


@pytest.fixture
def workflow(
    store: InMemoryStore,
    policy: AssignmentPolicy,
    grants: GrantStore,
    sink: RecordingSink,
    clock: FakeClock,
) -> RequestWorkflow:
    return RequestWorkflow(store, policy, grants, sink, clock=clock)


@pytest.fixture
def identity() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider(SUBJECTS.values(), [ACME, GLOBEX])


@pytest.fixture
def service(
    identity: InMemoryIdentityProvider,
    catalog: AgentCatalog,
    sink: RecordingSink,
    clock: FakeClock,
) -> AgentAccessService:
    return AgentAccessService(identity, catalog, notifier=sink, clock=clock)
