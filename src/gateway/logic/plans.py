"""
Plan resolution and agent access control.

Usage:
    resolver = PlanResolver(snapshot)
    tier = resolver.resolve_tier(request.plan)
    if AccessController(snapshot).validate_access("editor_agent", tier):
        ...
"""

import logging
from typing import Any

from gateway.catalog.schema import ConfigSnapshot, Tier, normalize_agent_id

logger = logging.getLogger(__name__)


class PlanResolver:
    """
    Maps raw plan values to tiers and tiers to their allowed agents.

    Never fails: unknown plans resolve to the default tier and an empty
    allow-map resolves to the fallback agent set.
    """

    def __init__(self, snapshot: ConfigSnapshot) -> None:
        """
        Initialize resolver.

        Args:
            snapshot: Configuration snapshot for this request.
        """
        self._snapshot = snapshot

    def resolve_tier(self, raw_tier_id: Any) -> Tier:
        """
        Resolve a raw plan value to a known tier.

        Args:
            raw_tier_id: Plan value from the caller, possibly missing or invalid.

        Returns:
            The matching tier, or the default tier.
        """
        tiers = self._snapshot.tiers
        if isinstance(raw_tier_id, str):
            tier = tiers.get(raw_tier_id.strip().lower())
            if tier is not None:
                return tier
        if raw_tier_id is not None:
            logger.debug("Unknown plan %r, using %s", raw_tier_id, self._snapshot.default_tier)
        return tiers[self._snapshot.default_tier]

    def allowed_agents(self, tier: Tier) -> frozenset[str]:
        """
        Get the agents a tier may use.

        Args:
            tier: Resolved tier.

        Returns:
            Agents enabled in the tier's allow-map, or the fallback set
            when none are enabled. Never empty.
        """
        enabled = frozenset(agent_id for agent_id, allowed in tier.agents.items() if allowed)
        if enabled:
            return enabled
        return frozenset(self._snapshot.fallback_agents)

    def upgrade_recommendations(self, agent_id: str) -> list[dict[str, Any]]:
        """
        List tiers that enable an agent, cheapest first.

        Args:
            agent_id: Agent the caller wanted.

        Returns:
            Tier summaries sorted by numeric price; custom prices last.
        """
        normalized = normalize_agent_id(agent_id)
        recommendations = [
            {
                "tier": tier.id,
                "name": tier.name,
                "price": tier.price,
                "features": list(tier.features),
            }
            for tier in self._snapshot.tiers.values()
            if tier.agents.get(normalized)
        ]
        return sorted(recommendations, key=lambda r: _price_sort_key(r["price"]))

    def pricing_comparison(self) -> list[dict[str, Any]]:
        """Summarize every tier for display."""
        return [
            {
                "id": tier.id,
                "name": tier.name,
                "price": tier.price,
                "features": list(tier.features),
                "agentCount": len(self.allowed_agents(tier)),
                "limits": {
                    "requests_per_window": tier.limits.requests_per_window,
                    "max_message_length": tier.limits.max_message_length,
                },
            }
            for tier in self._snapshot.tiers.values()
        ]


def _price_sort_key(price: Any) -> float:
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return float(price)
    return float("inf")


class AccessController:
    """
    Checks agents against per-agent tier restrictions.

    Agents absent from the restriction map are open to every tier.
    """

    def __init__(self, snapshot: ConfigSnapshot) -> None:
        """
        Initialize access controller.

        Args:
            snapshot: Configuration snapshot for this request.
        """
        self._snapshot = snapshot
        self._restricted = snapshot.routing.restricted

    def is_restricted(self, agent_id: str) -> bool:
        """Check whether an agent has a restriction list."""
        return normalize_agent_id(agent_id) in self._restricted

    def validate_access(self, agent_id: str, tier: Tier | str) -> bool:
        """
        Check whether a tier may use an agent.

        Args:
            agent_id: Agent id or display name (normalized here).
            tier: Tier or tier id.

        Returns:
            True for unrestricted agents, else tier membership in the
            agent's restriction list.
        """
        tier_id = tier if isinstance(tier, str) else tier.id
        restriction = self._restricted.get(normalize_agent_id(agent_id))
        if restriction is None:
            return True
        return tier_id in restriction

    def allowed_plans(self, agent_id: str) -> list[str]:
        """
        List the plans that may use an agent.

        Args:
            agent_id: Agent id.

        Returns:
            The restriction list for restricted agents, otherwise every
            tier whose allow-map enables the agent.
        """
        normalized = normalize_agent_id(agent_id)
        restriction = self._restricted.get(normalized)
        if restriction is not None:
            return list(restriction)
        return [tier.id for tier in self._snapshot.tiers.values() if tier.agents.get(normalized)]
