"""
Configuration schema for the gateway.

Typed, immutable views over the JSON configuration documents:
agents.json, pricing-tiers.json, routing.json and one tier-<id>.json per plan.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


def _frozen(mapping: Mapping[str, Any] | None = None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


def normalize_agent_id(agent_id: str) -> str:
    """Lowercase an agent id and collapse whitespace runs to underscores."""
    return "_".join(agent_id.strip().lower().split())


@dataclass(frozen=True)
class LocalBackend:
    """
    Agent answered in-process by the completion model.

    Attributes:
        system_prompt: Optional prompt overriding the generated one.
    """

    system_prompt: str | None = None


@dataclass(frozen=True)
class RemoteBackend:
    """
    Agent answered by a remote service.

    Attributes:
        endpoint: Base URL of the service.
        timeout_ms: Request timeout in milliseconds.
    """

    endpoint: str
    timeout_ms: int = 30000

    def __post_init__(self) -> None:
        """
        Validate remote backend.

        Raises:
            ValueError: If endpoint is empty or timeout is not positive.
        """
        if not self.endpoint:
            raise ValueError("Remote agent requires an endpoint")
        if self.timeout_ms <= 0:
            raise ValueError(f"Invalid timeout_ms {self.timeout_ms}: must be positive")


AgentBackend = LocalBackend | RemoteBackend


@dataclass(frozen=True)
class AgentDescriptor:
    """
    Metadata for one specialized responder.

    Attributes:
        id: Unique agent identifier
        name: Human-readable agent name
        description: One-line description used in routing prompts
        specialties: Topics the agent covers
        keywords: Lowercase keywords for deterministic routing
        backend: Local or remote execution backend
        tier_restriction: Single tier allowed to use the agent, if any
    """

    id: str
    name: str
    description: str
    specialties: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    backend: AgentBackend = field(default_factory=LocalBackend)
    tier_restriction: str | None = None

    @property
    def is_remote(self) -> bool:
        """Whether the agent is served by a remote endpoint."""
        return isinstance(self.backend, RemoteBackend)

    def matches(self, message: str) -> bool:
        """Check whether any keyword occurs in the message, ignoring case."""
        lower = message.lower()
        return any(keyword and keyword in lower for keyword in self.keywords)


@dataclass(frozen=True)
class AdPolicy:
    """
    Supplemental content appended to responses for ad-eligible tiers.

    Attributes:
        enabled: Whether ads are appended at all
        ad_types: Rotation order of ad types
        templates: Ad type -> text
    """

    enabled: bool = False
    ad_types: tuple[str, ...] = ("upgrade_promotion",)
    templates: Mapping[str, str] = field(default_factory=_frozen)


@dataclass(frozen=True)
class ModelParameters:
    """Completion parameters for one agent within a tier."""

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    timeout_ms: int | None = None


@dataclass(frozen=True)
class TierLimits:
    """Numeric limits for a tier; None means the gateway default applies."""

    requests_per_window: int | None = None
    max_message_length: int | None = None


@dataclass(frozen=True)
class Tier:
    """
    A subscription level merged from its pricing entry and tier document.

    Attributes:
        id: Tier identifier (e.g. "free")
        name: Display name
        price: Numeric price or a label such as "Custom"
        features: Ordered feature list from the pricing document
        feature_flags: Feature toggles from the tier document
        agents: Per-agent allow-map
        limits: Numeric limits
        models: Agent -> completion parameters
        prompts: Agent -> prompt template
        rate_limiting: Rate limit overrides (requests_per_minute/hour)
        ad_delivery: Ad policy, if configured
        cost_per_1k_tokens: Usage price reported back to callers
    """

    id: str
    name: str
    price: float | str = 0
    features: tuple[str, ...] = ()
    feature_flags: Mapping[str, bool] = field(default_factory=_frozen)
    agents: Mapping[str, bool] = field(default_factory=_frozen)
    limits: TierLimits = field(default_factory=TierLimits)
    models: Mapping[str, ModelParameters] = field(default_factory=_frozen)
    prompts: Mapping[str, str] = field(default_factory=_frozen)
    rate_limiting: Mapping[str, int] = field(default_factory=_frozen)
    ad_delivery: AdPolicy | None = None
    cost_per_1k_tokens: float = 0.0

    @property
    def ad_eligible(self) -> bool:
        """Whether responses for this tier get supplemental content."""
        return self.ad_delivery is not None and self.ad_delivery.enabled


@dataclass(frozen=True)
class RoutingConfig:
    """
    Routing settings from routing.json.

    Attributes:
        default_agent: Agent used when no keyword matches
        classifier_prompt: Template with {agents_list} and {message}
        classifier_timeout_ms: Optional override of the classifier timeout
        restricted: Agent -> tiers allowed to use it
    """

    default_agent: str
    classifier_prompt: str
    classifier_timeout_ms: int | None = None
    restricted: Mapping[str, tuple[str, ...]] = field(default_factory=_frozen)


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Immutable view of every configuration document at one point in time.

    Attributes:
        agents: Agent id -> descriptor, in catalog declaration order
        tiers: Tier id -> tier, in known-plan order
        routing: Routing settings
        default_tier: Tier used for unknown plan values
        fallback_agents: Agents allowed when a tier enables none
    """

    agents: Mapping[str, AgentDescriptor]
    tiers: Mapping[str, Tier]
    routing: RoutingConfig
    default_tier: str
    fallback_agents: tuple[str, ...] = ()

    def get_agent(self, agent_id: str) -> AgentDescriptor | None:
        """Look up an agent by id, normalizing case and whitespace."""
        return self.agents.get(normalize_agent_id(agent_id))

    def agents_list(self) -> str:
        """Render the agent catalog for the routing prompt."""
        return "\n".join(f"- {agent.id}: {agent.description}" for agent in self.agents.values())
