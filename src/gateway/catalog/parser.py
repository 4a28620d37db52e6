"""
Configuration parser for the gateway.

Loads the JSON configuration documents and converts them to a typed,
immutable ConfigSnapshot. Supports environment variable expansion using
${VAR} or ${VAR:-default} syntax in string values.
"""

import json
import logging
import os
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any

from gateway.catalog.schema import (
    AdPolicy,
    AgentBackend,
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
from gateway.logic.exceptions import (
    ConfigNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)

logger = logging.getLogger(__name__)

AGENTS_DOCUMENT = "agents.json"
PRICING_DOCUMENT = "pricing-tiers.json"
ROUTING_DOCUMENT = "routing.json"

DEFAULT_ROUTING_PROMPT = (
    "You are an intelligent agent router. Your job is to analyze user messages "
    "and route them to the most appropriate specialized agent.\n\n"
    "Available agents:\n{agents_list}\n\n"
    "User message: {message}\n\n"
    "Analyze the message and respond with ONLY the agent id from the list above.\n"
    "Do not include any other text or explanation."
)

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(.*?))?\}")


def tier_document(tier_id: str) -> str:
    """Get the document name holding a tier's configuration."""
    return f"tier-{tier_id}.json"


def _section(raw: dict[str, Any], key: str, where: str, kind: type = dict) -> Any:
    """
    Get an optional section of a document, checking its JSON type.

    Raises:
        ConfigValidationError: If the section is present with the wrong type.
    """
    value = raw.get(key)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        expected = "an object" if kind is dict else "a list"
        raise ConfigValidationError(f"{where}: '{key}' must be {expected}")
    return value


def _optional_number(value: Any, where: str, kind: type = int) -> Any:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(f"{where}: expected a number, got {value!r}")
    return kind(value)


def expand_env_vars(value: Any) -> Any:
    """
    Recursively expand ${ENV_VAR} and ${ENV_VAR:-default} placeholders.

    Args:
        value: Configuration value (can be dict, list, str, etc.)

    Returns:
        Value with environment variables expanded
    """
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            return os.getenv(match.group(1), match.group(2) or "")

        return _ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


class CatalogParser:
    """
    JSON configuration parser.

    Usage:
        parser = CatalogParser("config", plans=["free", "admin"], default_plan="free")
        snapshot = parser.load()
    """

    def __init__(
        self,
        config_dir: str | Path,
        plans: list[str],
        default_plan: str,
        default_agent: str = "f8_agent",
        fallback_agents: list[str] | None = None,
    ) -> None:
        """
        Initialize parser with the configuration directory.

        Args:
            config_dir: Directory holding the configuration documents
            plans: Known tier ids, in display order
            default_plan: Tier used for unknown plan values
            default_agent: Agent used when routing.json names none
            fallback_agents: Agents allowed when a tier enables none

        Raises:
            ValueError: If default_plan is not a known plan
        """
        if default_plan not in plans:
            raise ValueError(f"Default plan '{default_plan}' is not one of {plans}")
        self.config_dir = Path(config_dir)
        self.plans = list(plans)
        self.default_plan = default_plan
        self.default_agent = default_agent
        self.fallback_agents = tuple(fallback_agents or [default_agent])

    def document_paths(self) -> list[Path]:
        """List every document the snapshot is built from."""
        names = [AGENTS_DOCUMENT, PRICING_DOCUMENT, ROUTING_DOCUMENT]
        names.extend(tier_document(tier_id) for tier_id in self.plans)
        return [self.config_dir / name for name in names]

    def load(self) -> ConfigSnapshot:
        """
        Load and parse every configuration document.

        Returns:
            Parsed and validated snapshot

        Raises:
            ConfigNotFoundError: If the agent catalog is missing
            ConfigParseError: If a document is not valid JSON
            ConfigValidationError: If a document is structurally invalid
        """
        try:
            return self._load()
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            # Shapes the section checks do not cover still surface as config errors
            raise ConfigValidationError(f"Malformed configuration: {e}") from e

    def _load(self) -> ConfigSnapshot:
        agents = self._parse_agents(self._read(AGENTS_DOCUMENT, required=True))
        routing = self._parse_routing(self._read(ROUTING_DOCUMENT), agents)
        pricing = _section(self._read(PRICING_DOCUMENT), "pricing_tiers", PRICING_DOCUMENT)

        tiers = {}
        for tier_id in self.plans:
            entry = pricing.get(tier_id) or {}
            if not isinstance(entry, dict):
                raise ConfigValidationError(f"{PRICING_DOCUMENT}: tier '{tier_id}' must be an object")
            tier_raw = self._read(tier_document(tier_id))
            tiers[tier_id] = self._parse_tier(tier_id, entry, tier_raw, agents)

        return ConfigSnapshot(
            agents=MappingProxyType(agents),
            tiers=MappingProxyType(tiers),
            routing=routing,
            default_tier=self.default_plan,
            fallback_agents=self.fallback_agents,
        )

    def _read(self, name: str, required: bool = False) -> dict[str, Any]:
        path = self.config_dir / name
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            if required:
                raise ConfigNotFoundError(name)
            logger.warning("⚠️ Configuration document %s not found, using defaults", name)
            return {}
        except json.JSONDecodeError as e:
            raise ConfigParseError(name, str(e)) from e

        if not isinstance(raw, dict):
            raise ConfigValidationError(f"{name}: expected object, got {type(raw).__name__}")
        return expand_env_vars(raw)

    def _parse_agents(self, raw: dict[str, Any]) -> dict[str, AgentDescriptor]:
        agents_raw = _section(raw, "agents", AGENTS_DOCUMENT)
        if not agents_raw:
            raise ConfigValidationError(f"{AGENTS_DOCUMENT}: no agents defined")

        agents: dict[str, AgentDescriptor] = {}
        for raw_id, a in agents_raw.items():
            agent_id = normalize_agent_id(raw_id)
            where = f"Invalid agent config for {raw_id}"
            if not isinstance(a, dict):
                raise ConfigValidationError(f"{where}: expected object")
            if not isinstance(a.get("name"), str) or not isinstance(a.get("description"), str):
                raise ConfigValidationError(f"{where}: missing name or description")
            if not a["name"] or not a["description"]:
                raise ConfigValidationError(f"{where}: missing name or description")
            restriction = a.get("tier_restriction")
            if restriction is not None and restriction not in self.plans:
                raise ConfigValidationError(f"{where}: unknown tier_restriction '{restriction}'")
            specialties = _section(a, "specialties", where, list)
            keywords = _section(a, "keywords", where, list)
            if not all(isinstance(k, str) for k in [*specialties, *keywords]):
                raise ConfigValidationError(f"{where}: specialties and keywords must be strings")
            try:
                backend = self._parse_backend(a)
            except ValueError as e:
                raise ConfigValidationError(f"{where}: {e}") from e

            agents[agent_id] = AgentDescriptor(
                id=agent_id,
                name=a["name"],
                description=a["description"],
                specialties=tuple(specialties),
                keywords=tuple(k.lower() for k in keywords if k),
                backend=backend,
                tier_restriction=restriction,
            )
        return agents

    def _parse_backend(self, raw: dict[str, Any]) -> AgentBackend:
        kind = str(raw.get("type", "local")).lower()
        if kind == "local":
            system_prompt = raw.get("system_prompt")
            if system_prompt is not None and not isinstance(system_prompt, str):
                raise ValueError("system_prompt must be a string")
            return LocalBackend(system_prompt=system_prompt)
        if kind == "remote":
            url = raw.get("url", "")
            if not isinstance(url, str):
                raise ValueError("url must be a string")
            return RemoteBackend(
                endpoint=url.rstrip("/"),
                timeout_ms=int(raw.get("timeout_ms", 30000)),
            )
        raise ValueError(f"Invalid type '{kind}'. Must be: local or remote")

    def _parse_routing(
        self,
        raw: dict[str, Any],
        agents: dict[str, AgentDescriptor],
    ) -> RoutingConfig:
        routing_raw = _section(raw, "routing", ROUTING_DOCUMENT)
        default_agent = routing_raw.get("default_agent", self.default_agent)
        if not isinstance(default_agent, str):
            raise ConfigValidationError(f"{ROUTING_DOCUMENT}: default_agent must be a string")
        default_agent = normalize_agent_id(default_agent)

        access = _section(routing_raw, "access", ROUTING_DOCUMENT)
        restricted: dict[str, tuple[str, ...]] = {}
        for agent_id, tiers in _section(access, "restricted", ROUTING_DOCUMENT).items():
            if not isinstance(tiers, list):
                raise ConfigValidationError(
                    f"{ROUTING_DOCUMENT}: restriction for {agent_id} must be a list"
                )
            restricted[normalize_agent_id(agent_id)] = tuple(tiers)

        # Catalog restrictions apply where routing.json names none
        for agent in agents.values():
            if agent.tier_restriction and agent.id not in restricted:
                restricted[agent.id] = (agent.tier_restriction,)

        classifier_raw = _section(routing_raw, "classifier", ROUTING_DOCUMENT)
        prompt = classifier_raw.get("prompt_template", DEFAULT_ROUTING_PROMPT)
        if not isinstance(prompt, str):
            raise ConfigValidationError(f"{ROUTING_DOCUMENT}: prompt_template must be a string")
        return RoutingConfig(
            default_agent=default_agent,
            classifier_prompt=prompt,
            classifier_timeout_ms=_optional_number(
                classifier_raw.get("timeout_ms"), f"{ROUTING_DOCUMENT}: timeout_ms"
            ),
            restricted=restricted,
        )

    def _parse_tier(
        self,
        tier_id: str,
        pricing: dict[str, Any],
        raw: dict[str, Any],
        agents: dict[str, AgentDescriptor],
    ) -> Tier:
        where = tier_document(tier_id)
        allow_map = {
            normalize_agent_id(k): bool(v) for k, v in _section(raw, "agents", where).items()
        }
        unknown = sorted(agent_id for agent_id in allow_map if agent_id not in agents)
        if unknown:
            raise ConfigValidationError(f"{where}: unknown agents in allow-map: {', '.join(unknown)}")

        models = {}
        for agent_id, m in _section(raw, "models", where).items():
            if not isinstance(m, dict):
                raise ConfigValidationError(f"{where}: model entry for {agent_id} must be an object")
            model = m.get("model")
            if model is not None and not isinstance(model, str):
                raise ConfigValidationError(f"{where}: model for {agent_id} must be a string")
            models[normalize_agent_id(agent_id)] = ModelParameters(
                model=model,
                temperature=_optional_number(m.get("temperature"), f"{where}: {agent_id}.temperature", float),
                max_tokens=_optional_number(
                    m.get("maxTokens", m.get("max_tokens")), f"{where}: {agent_id}.maxTokens"
                ),
                timeout_ms=_optional_number(m.get("timeout"), f"{where}: {agent_id}.timeout"),
            )

        prompts = {
            normalize_agent_id(agent_id): p["template"]
            for agent_id, p in _section(raw, "prompts", where).items()
            if isinstance(p, dict) and isinstance(p.get("template"), str) and p["template"]
        }

        ad_raw = raw.get("ad_delivery")
        ad_delivery = None
        if isinstance(ad_raw, dict):
            templates = _section(ad_raw, "templates", where)
            ad_delivery = AdPolicy(
                enabled=bool(ad_raw.get("enabled", False)),
                ad_types=tuple(_section(ad_raw, "ad_types", where, list) or ["upgrade_promotion"]),
                templates={k: str(v) for k, v in templates.items()},
            )

        limits_raw = _section(pricing, "limits", PRICING_DOCUMENT)
        cost = _optional_number(
            pricing.get("cost_per_1k_tokens"), f"{PRICING_DOCUMENT}: {tier_id}.cost_per_1k_tokens", float
        )
        return Tier(
            id=tier_id,
            name=str(pricing.get("name", tier_id.title())),
            price=pricing.get("price", 0),
            features=tuple(_section(pricing, "features", PRICING_DOCUMENT, list)),
            feature_flags={k: bool(v) for k, v in _section(raw, "features", where).items()},
            agents=allow_map,
            limits=TierLimits(
                requests_per_window=_optional_number(
                    limits_raw.get("requests_per_window"), f"{PRICING_DOCUMENT}: {tier_id}.limits"
                ),
                max_message_length=_optional_number(
                    limits_raw.get("max_message_length"), f"{PRICING_DOCUMENT}: {tier_id}.limits"
                ),
            ),
            models=models,
            prompts=prompts,
            rate_limiting=dict(_section(raw, "rate_limiting", where)),
            ad_delivery=ad_delivery,
            cost_per_1k_tokens=cost or 0.0,
        )
