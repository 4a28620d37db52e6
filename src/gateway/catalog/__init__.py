"""Configuration snapshot system for the gateway."""

from .parser import (
    AGENTS_DOCUMENT,
    PRICING_DOCUMENT,
    ROUTING_DOCUMENT,
    CatalogParser,
    tier_document,
)
from .schema import (
    AdPolicy,
    AgentDescriptor,
    ConfigSnapshot,
    LocalBackend,
    ModelParameters,
    RemoteBackend,
    RoutingConfig,
    Tier,
    TierLimits,
    normalize_agent_id,
)
from .store import SnapshotStore

__all__ = [
    "AGENTS_DOCUMENT",
    "PRICING_DOCUMENT",
    "ROUTING_DOCUMENT",
    "CatalogParser",
    "tier_document",
    "AdPolicy",
    "AgentDescriptor",
    "ConfigSnapshot",
    "LocalBackend",
    "ModelParameters",
    "RemoteBackend",
    "RoutingConfig",
    "Tier",
    "TierLimits",
    "normalize_agent_id",
    "SnapshotStore",
]
