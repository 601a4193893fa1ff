"""Tests for the agent catalog."""

from __future__ import annotations

import json

import pytest

from agentgate import Agent, AgentCatalog, ConfigurationError, FailedPreconditionError, NotFoundError, Tier
from agentgate.permissions.catalog import version_key


class TestLookup:
    def test_tier_of(self, catalog) -> None:
        """tier_of returns the published tier."""
        assert catalog.tier_of("free-1") is Tier.FREE
        assert catalog.tier_of("ent-1") is Tier.ENTERPRISE

    def test_unknown_agent(self, catalog) -> None:
        """Unknown agents raise NotFoundError with the agent id."""
        with pytest.raises(NotFoundError) as exc_info:
            catalog.tier_of("ghost")
        assert exc_info.value.code == "NOT_FOUND"
        assert exc_info.value.details == {"agent_id": "ghost"}

    def test_filters(self, catalog) -> None:
        """Agents can be listed by tier and by category."""
        assert [a.id for a in catalog.by_tier(Tier.PREMIUM)] == ["prem-1"]
        assert [a.id for a in catalog.by_category("legal")] == ["ent-1"]

    def test_container_protocol(self, catalog) -> None:
        """The catalog supports in, len and iteration."""
        assert "free-1" in catalog
        assert "ghost" not in catalog
        assert len(catalog) == 3
        assert {a.id for a in catalog} == {"free-1", "prem-1", "ent-1"}


class TestPublish:
    def test_retier_same_version_rejected(self, catalog) -> None:
        """Changing the tier of a published version is refused."""
        with pytest.raises(FailedPreconditionError, match="immutable"):
            catalog.publish(Agent(id="free-1", name="Summarizer", tier=Tier.PREMIUM))

    def test_retier_as_new_version(self, catalog) -> None:
        """A new version may carry a new tier."""
        catalog.publish(Agent(id="free-1", name="Summarizer", tier=Tier.PREMIUM, version="2.0.0"))
        assert catalog.tier_of("free-1") is Tier.PREMIUM

    def test_republish_same_tier_is_allowed(self, catalog) -> None:
        """Republishing a version with the same tier replaces it."""
        catalog.publish(Agent(id="prem-1", name="Analyst v1.0 rename", tier=Tier.PREMIUM))
        assert catalog.get("prem-1").name == "Analyst v1.0 rename"

    def test_older_version_does_not_replace_latest(self, catalog) -> None:
        """Publishing an older version keeps the latest as current."""
        catalog.publish(Agent(id="free-1", name="Summarizer", tier=Tier.PREMIUM, version="2.0.0"))
        catalog.publish(Agent(id="free-1", name="Summarizer", tier=Tier.FREE, version="1.5.0"))
        assert catalog.get("free-1").version == "2.0.0"
        assert catalog.tier_of("free-1") is Tier.PREMIUM

    def test_older_version_still_tier_checked(self, catalog) -> None:
        """Older versions are still checked for tier changes."""
        catalog.publish(Agent(id="free-1", name="Summarizer", tier=Tier.PREMIUM, version="2.0.0"))
        with pytest.raises(FailedPreconditionError, match="immutable"):
            catalog.publish(Agent(id="free-1", name="Summarizer", tier=Tier.ENTERPRISE))
        assert catalog.tier_of("free-1") is Tier.PREMIUM

    def test_agent_is_frozen(self, catalog) -> None:
        """Agents are immutable."""
        with pytest.raises(Exception):
            catalog.get("free-1").tier = Tier.ENTERPRISE  # type: ignore[misc]


class TestVersionKey:
    def test_numeric_parts_compare_as_integers(self) -> None:
        """Numeric parts compare as integers, not strings."""
        assert version_key("1.10.0") > version_key("1.9.2")
        assert version_key("2.0") > version_key("1.99.99")

    def test_equal_versions(self) -> None:
        """Equal versions produce equal keys."""
        assert version_key("1.0.0") == version_key("1.0.0")

    def test_text_parts(self) -> None:
        """Text parts compare lexically."""
        assert version_key("1.0.0-beta") > version_key("1.0.0-alpha")


class TestFromConfig:
    DOCUMENT = {
        "agents": [
            {"id": "a", "name": "A", "tier": "free"},
            {"id": "b", "name": "B", "tier": "enterprise", "category": "legal"},
        ]
    }

    def test_from_mapping(self) -> None:
        """Load a catalog from a mapping."""
        catalog = AgentCatalog.from_config(self.DOCUMENT)
        assert catalog.tier_of("b") is Tier.ENTERPRISE
        assert catalog.get("a").category == "general"

    def test_from_json_string(self) -> None:
        """Load a catalog from a JSON string."""
        catalog = AgentCatalog.from_config(json.dumps(self.DOCUMENT))
        assert len(catalog) == 2

    def test_from_path(self, tmp_path) -> None:
        """Load a catalog from a JSON file."""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(self.DOCUMENT), encoding="utf-8")
        assert AgentCatalog.from_config(path).tier_of("a") is Tier.FREE

    def test_missing_file(self, tmp_path) -> None:
        """A missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="Cannot read"):
            AgentCatalog.from_config(tmp_path / "nope.json")

    def test_invalid_json(self) -> None:
        """Malformed JSON is a configuration error."""
        with pytest.raises(ConfigurationError, match="Invalid agent catalog JSON"):
            AgentCatalog.from_config("{not json")

    def test_missing_agents_list(self) -> None:
        """A document without an agents list is rejected."""
        with pytest.raises(ConfigurationError, match="'agents' list"):
            AgentCatalog.from_config({"items": []})

    def test_invalid_tier(self) -> None:
        """An unknown tier is rejected."""
        with pytest.raises(ConfigurationError, match="Invalid agent entry"):
            AgentCatalog.from_config({"agents": [{"id": "x", "name": "X", "tier": "platinum"}]})
