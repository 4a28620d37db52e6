"""
Applies parsed admin intents to the configuration documents.

Each intent touches one document, except model parameter updates which
visit every tier document configuring the agent. Multi-document updates are
not transactional: a failure part-way leaves earlier documents updated and
is logged as a partial application.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from gateway.catalog.parser import PRICING_DOCUMENT, tier_document
from gateway.catalog.schema import AgentDescriptor, ConfigSnapshot
from gateway.logic.command_interpreter import IntentType, MutationIntent
from gateway.logic.document_store import ConfigurationDocument, DocumentStore
from gateway.logic.exceptions import (
    AgentNotFoundError,
    ConfigNotFoundError,
    GatewayError,
    InvalidCommandValueError,
    TierNotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "meta-llama/llama-3.1-8b-instruct"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TIMEOUT_MS = 30000

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


@dataclass
class MutationResult:
    """
    Outcome of one applied intent.

    Attributes:
        message: Human-readable summary.
        changes: One entry per changed field: file, field, value.
    """

    message: str
    changes: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the admin API response body."""
        return {"success": True, "message": self.message, "changes": self.changes}


def _pricing_entry(doc: ConfigurationDocument, tier_id: str) -> dict[str, Any]:
    entry = doc.get("pricing_tiers", {}).get(tier_id)
    if not isinstance(entry, dict):
        raise TierNotFoundError(tier_id)
    return entry


def default_prompt_template(agent: AgentDescriptor) -> str:
    """Build the prompt template given to an agent newly added to a tier."""
    specialties = "\n".join(f"- {s}" for s in agent.specialties)
    return (
        f"You are the {agent.name}, a {agent.description} specializing in:\n"
        f"{specialties}\n\n"
        "User question: {message}\n\n"
        "Provide detailed guidance:"
    )


class ConfigurationMutator:
    """
    Executes MutationIntents against the document store.

    Usage:
        mutator = ConfigurationMutator(documents, snapshots.current)
        result = mutator.apply(CommandInterpreter().parse(command))
    """

    def __init__(
        self,
        documents: DocumentStore,
        snapshot: Callable[[], ConfigSnapshot],
    ) -> None:
        """
        Initialize mutator.

        Args:
            documents: Store for reading and writing documents.
            snapshot: Returns the current configuration snapshot, used to
                check tier and agent ids.
        """
        self._documents = documents
        self._snapshot = snapshot
        self._handlers: dict[IntentType, Callable[[MutationIntent], MutationResult]] = {
            IntentType.ADD_AGENT_TO_TIER: self._add_agent,
            IntentType.REMOVE_AGENT_FROM_TIER: self._remove_agent,
            IntentType.ENABLE_FEATURE_FOR_TIER: self._enable_feature,
            IntentType.DISABLE_FEATURE_FOR_TIER: self._disable_feature,
            IntentType.ADD_FEATURES_TO_TIER: self._add_features,
            IntentType.UPDATE_AGENT_TEMPERATURE: self._update_temperature,
            IntentType.UPDATE_AGENT_MAX_TOKENS: self._update_max_tokens,
            IntentType.UPDATE_TIER_RATE_LIMIT: self._update_rate_limit,
            IntentType.UPDATE_TIER_PRICE: self._update_price,
        }

    def apply(self, intent: MutationIntent) -> MutationResult:
        """
        Apply an intent.

        Args:
            intent: Parsed admin command.

        Returns:
            MutationResult describing what changed.

        Raises:
            TierNotFoundError: If the tier is unknown.
            AgentNotFoundError: If the agent is not in the catalog.
            InvalidCommandValueError: If a value is out of range.
            ConfigError: If a document cannot be read or written.
        """
        handler = self._handlers[intent.kind]
        result = handler(intent)
        logger.info("🛠️ Applied %s: %s", intent.kind.value, result.message)
        return result

    def _require_tier(self, intent: MutationIntent) -> str:
        tier_id = intent.tier or ""
        if tier_id not in self._snapshot().tiers:
            raise TierNotFoundError(tier_id)
        return tier_id

    def _require_agent(self, intent: MutationIntent) -> AgentDescriptor:
        agent_id = intent.agent or ""
        agents = self._snapshot().agents
        agent = agents.get(agent_id)
        if agent is None and agent_id.endswith("_agent"):
            agent = agents.get(agent_id[: -len("_agent")])
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def _add_agent(self, intent: MutationIntent) -> MutationResult:
        tier_id = self._require_tier(intent)
        agent = self._require_agent(intent)
        path = tier_document(tier_id)

        def mutate(doc: ConfigurationDocument) -> None:
            doc.setdefault("agents", {})[agent.id] = True
            doc.setdefault("features", {})[f"{agent.id}_access"] = True
            doc.setdefault("models", {}).setdefault(
                agent.id,
                {
                    "model": DEFAULT_MODEL,
                    "temperature": DEFAULT_TEMPERATURE,
                    "maxTokens": DEFAULT_MAX_TOKENS,
                    "timeout": DEFAULT_TIMEOUT_MS,
                },
            )
            doc.setdefault("chains", {}).setdefault(
                agent.id,
                {"type": "prompt_chain", "enabled": True, "specialized": True},
            )
            doc.setdefault("prompts", {}).setdefault(
                agent.id,
                {"template": default_prompt_template(agent), "inputVariables": ["message"]},
            )

        self._documents.update(path, mutate, create=True)
        return MutationResult(
            message=f"Added {agent.id} to {tier_id} tier",
            changes=[
                {"file": path, "field": f"agents.{agent.id}", "value": True},
                {"file": path, "field": f"features.{agent.id}_access", "value": True},
            ],
        )

    def _remove_agent(self, intent: MutationIntent) -> MutationResult:
        tier_id = self._require_tier(intent)
        agent = self._require_agent(intent)
        path = tier_document(tier_id)

        def mutate(doc: ConfigurationDocument) -> None:
            doc.setdefault("agents", {})[agent.id] = False
            doc.setdefault("features", {}).pop(f"{agent.id}_access", None)

        self._documents.update(path, mutate)
        return MutationResult(
            message=f"Removed {agent.id} from {tier_id} tier",
            changes=[
                {"file": path, "field": f"agents.{agent.id}", "value": False},
                {"file": path, "field": f"features.{agent.id}_access", "value": None},
            ],
        )

    def _enable_feature(self, intent: MutationIntent) -> MutationResult:
        tier_id = self._require_tier(intent)
        feature = intent.feature or ""
        path = tier_document(tier_id)
        self._documents.update(
            path,
            lambda doc: doc.setdefault("features", {}).__setitem__(feature, True),
            create=True,
        )
        return MutationResult(
            message=f"Enabled {feature} for {tier_id} tier",
            changes=[{"file": path, "field": f"features.{feature}", "value": True}],
        )

    def _disable_feature(self, intent: MutationIntent) -> MutationResult:
        tier_id = self._require_tier(intent)
        feature = intent.feature or ""
        path = tier_document(tier_id)
        self._documents.update(path, lambda doc: doc.setdefault("features", {}).pop(feature, None))
        return MutationResult(
            message=f"Disabled {feature} for {tier_id} tier",
            changes=[{"file": path, "field": f"features.{feature}", "value": None}],
        )

    def _add_features(self, intent: MutationIntent) -> MutationResult:
        tier_id = self._require_tier(intent)
        feature = intent.feature or ""

        def mutate(doc: ConfigurationDocument) -> None:
            entry = _pricing_entry(doc, tier_id)
            features = entry.setdefault("features", [])
            if feature not in features:
                features.append(feature)

        self._documents.update(PRICING_DOCUMENT, mutate)
        return MutationResult(
            message=f"Added {feature} features to {tier_id} tier",
            changes=[{"file": PRICING_DOCUMENT, "field": f"{tier_id}.features", "value": feature}],
        )

    def _update_model_parameter(
        self,
        intent: MutationIntent,
        key: str,
        value: int | float,
        label: str,
    ) -> MutationResult:
        agent = self._require_agent(intent)
        changes: list[dict[str, Any]] = []
        updated: list[str] = []

        def mutate(doc: ConfigurationDocument) -> None:
            models = doc.get("models")
            if not isinstance(models, dict) or not isinstance(models.get(agent.id), dict):
                # Entry removed since the unlocked read
                raise AgentNotFoundError(agent.id)
            models[agent.id][key] = value

        for tier_id in self._snapshot().tiers:
            path = tier_document(tier_id)
            try:
                doc = self._documents.read(path)
            except ConfigNotFoundError:
                logger.warning("⚠️ Skipping %s: document not found", path)
                continue
            if agent.id not in doc.get("models", {}):
                continue
            try:
                self._documents.update(path, mutate)
            except AgentNotFoundError:
                logger.warning("⚠️ Skipping %s: %s no longer configured", path, agent.id)
                continue
            except GatewayError:
                if updated:
                    logger.error(
                        "❌ Partial %s update for %s: already applied to %s",
                        label,
                        agent.id,
                        ", ".join(updated),
                    )
                raise
            updated.append(tier_id)
            changes.append({"file": path, "field": f"models.{agent.id}.{key}", "value": value})

        if not updated:
            return MutationResult(message=f"No tier configures {agent.id}; nothing changed")
        return MutationResult(
            message=f"Updated {agent.id} {label} to {value} in tiers: {', '.join(updated)}",
            changes=changes,
        )

    def _update_temperature(self, intent: MutationIntent) -> MutationResult:
        value = float(intent.value or 0)
        if not MIN_TEMPERATURE <= value <= MAX_TEMPERATURE:
            raise InvalidCommandValueError(
                f"Temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}"
            )
        return self._update_model_parameter(intent, "temperature", value, "temperature")

    def _update_max_tokens(self, intent: MutationIntent) -> MutationResult:
        value = int(intent.value or 0)
        if value <= 0:
            raise InvalidCommandValueError("Max tokens must be a positive integer")
        return self._update_model_parameter(intent, "maxTokens", value, "max tokens")

    def _update_rate_limit(self, intent: MutationIntent) -> MutationResult:
        tier_id = self._require_tier(intent)
        value = int(intent.value or 0)
        if value <= 0:
            raise InvalidCommandValueError("Rate limit must be a positive integer")
        key = "requests_per_minute" if intent.period == "minute" else "requests_per_hour"
        path = tier_document(tier_id)
        self._documents.update(
            path,
            lambda doc: doc.setdefault("rate_limiting", {}).__setitem__(key, value),
            create=True,
        )
        return MutationResult(
            message=f"Set {tier_id} tier rate limit to {value} {key.replace('_', ' ')}",
            changes=[{"file": path, "field": f"rate_limiting.{key}", "value": value}],
        )

    def _update_price(self, intent: MutationIntent) -> MutationResult:
        tier_id = self._require_tier(intent)
        value = int(intent.value or 0)

        def mutate(doc: ConfigurationDocument) -> None:
            _pricing_entry(doc, tier_id)["price"] = value

        self._documents.update(PRICING_DOCUMENT, mutate)
        return MutationResult(
            message=f"Updated {tier_id} tier price to ${value}",
            changes=[{"file": PRICING_DOCUMENT, "field": f"{tier_id}.price", "value": value}],
        )
