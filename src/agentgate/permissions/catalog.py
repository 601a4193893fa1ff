"""Agent catalog: agent identity → tier and category.

The catalog is owned by an external system and is read-only to the
decision core. Loaders populate it with :meth:`AgentCatalog.publish` or
:meth:`AgentCatalog.from_config`.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from pydantic import ValidationError

from ..exceptions import ConfigurationError, FailedPreconditionError, NotFoundError
from ..models import Agent, Tier

logger = logging.getLogger(__name__)


def version_key(version: str) -> tuple[tuple[int, int, str], ...]:
    """Sort key for dotted versions: numeric parts compare as integers, before text parts."""
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in re.split(r"[.\-+]", version)
        if part
    )


class AgentCatalog:
    """In-process view of the published agents.

    Each agent id maps to its latest published version. Publishing the same
    id and version with a different tier is refused: re-tiering requires a
    new version.

    Example::

        catalog = AgentCatalog([
            Agent(id="free-1", name="Summarizer", tier=Tier.FREE),
            Agent(id="ent-1", name="Contract Review", tier=Tier.ENTERPRISE),
        ])
        catalog.tier_of("ent-1")  # Tier.ENTERPRISE
    """

    def __init__(self, agents: Iterable[Agent] = ()) -> None:
        self._agents: dict[str, Agent] = {}
        self._tiers_by_version: dict[tuple[str, str], Tier] = {}
        for agent in agents:
            self.publish(agent)

    # ── Loading ─────────────────────────────────────────

    @classmethod
    def from_config(cls, document: Mapping[str, Any] | str | Path) -> "AgentCatalog":
        """Build a catalog from ``{"agents": [{...}, ...]}``.

        Accepts a mapping, a JSON string, or a path to a JSON file.

        Raises:
            ConfigurationError: unreadable document or invalid agent entry.
        """
        if isinstance(document, Path):
            try:
                document = json.loads(document.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise ConfigurationError(f"Cannot read agent catalog: {e}", path=str(document)) from e
        elif isinstance(document, str):
            try:
                document = json.loads(document)
            except ValueError as e:
                raise ConfigurationError(f"Invalid agent catalog JSON: {e}") from e

        entries = document.get("agents")
        if not isinstance(entries, list):
            raise ConfigurationError("Agent catalog must contain an 'agents' list")

        catalog = cls()
        for entry in entries:
            try:
                agent = Agent.model_validate(entry)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid agent entry: {e}", entry=entry) from e
            catalog.publish(agent)
        logger.info("Loaded agent catalog with %d agents", len(catalog))
        return catalog

    def publish(self, agent: Agent) -> Agent:
        """Publish an agent version. Older versions are recorded but do not replace the current one.

        Raises:
            FailedPreconditionError: the same id/version was already
                published with a different tier.
        """
        key = (agent.id, agent.version)
        existing_tier = self._tiers_by_version.get(key)
        if existing_tier is not None and existing_tier != agent.tier:
            raise FailedPreconditionError(
                "Agent tier is immutable for a published version",
                agent_id=agent.id,
                version=agent.version,
                tier=existing_tier.value,
            )
        self._tiers_by_version[key] = agent.tier
        current = self._agents.get(agent.id)
        if current is None or version_key(agent.version) >= version_key(current.version):
            self._agents[agent.id] = agent
        else:
            logger.debug("Agent %s %s kept over older %s", agent.id, current.version, agent.version)
        return agent

    # ── Lookup ──────────────────────────────────────────

    def get(self, agent_id: str) -> Agent:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise NotFoundError("Unknown agent", agent_id=agent_id) from None

    def tier_of(self, agent_id: str) -> Tier:
        """Tier of the agent's current version.

        Raises:
            NotFoundError: unknown agent.
        """
        return self.get(agent_id).tier

    def by_tier(self, tier: Tier) -> list[Agent]:
        return [a for a in self._agents.values() if a.tier == tier]

    def by_category(self, category: str) -> list[Agent]:
        return [a for a in self._agents.values() if a.category == category]

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __iter__(self) -> Iterator[Agent]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)


__all__ = ["AgentCatalog", "version_key"]
