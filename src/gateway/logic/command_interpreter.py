"""
Admin command interpreter.

Maps free-text admin commands to typed mutation intents using an ordered
list of patterns. The first matching pattern wins, so more specific
patterns must come before more general ones ("add X-agent to T tier"
before "add X features to T tier").
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gateway.logic.exceptions import CommandParseError, InvalidCommandValueError


class IntentType(str, Enum):
    """Kinds of configuration change an admin command can request."""

    ADD_AGENT_TO_TIER = "add_agent_to_tier"
    REMOVE_AGENT_FROM_TIER = "remove_agent_from_tier"
    ENABLE_FEATURE_FOR_TIER = "enable_feature_for_tier"
    DISABLE_FEATURE_FOR_TIER = "disable_feature_for_tier"
    ADD_FEATURES_TO_TIER = "add_features_to_tier"
    UPDATE_AGENT_TEMPERATURE = "update_agent_temperature"
    UPDATE_AGENT_MAX_TOKENS = "update_agent_max_tokens"
    UPDATE_TIER_RATE_LIMIT = "update_tier_rate_limit"
    UPDATE_TIER_PRICE = "update_tier_price"


@dataclass(frozen=True)
class MutationIntent:
    """
    A parsed admin command.

    Attributes:
        kind: What to change.
        command: Original command text.
        tier: Target tier id, when the command names one.
        agent: Normalized agent id, when the command names one.
        feature: Feature name, when the command names one.
        value: Numeric parameter (temperature, max tokens, limit, price).
        period: Rate limit period ("minute", "hour", ...).
    """

    kind: IntentType
    command: str
    tier: str | None = None
    agent: str | None = None
    feature: str | None = None
    value: int | float | None = None
    period: str | None = None


@dataclass(frozen=True)
class CommandRule:
    """One command pattern and the intent fields its groups fill."""

    pattern: re.Pattern[str]
    kind: IntentType
    fields: tuple[str, ...]


def _rule(pattern: str, kind: IntentType, *fields: str) -> CommandRule:
    return CommandRule(re.compile(pattern, re.IGNORECASE), kind, fields)


COMMAND_RULES: tuple[CommandRule, ...] = (
    _rule(r"allow\s+(\w+)\s+to\s+use\s+(\w+)-?agent", IntentType.ADD_AGENT_TO_TIER, "tier", "agent"),
    _rule(r"remove\s+(\w+)-?agent\s+from\s+(\w+)\s+tier", IntentType.REMOVE_AGENT_FROM_TIER, "agent", "tier"),
    _rule(r"add\s+(\w+)-?agent\s+to\s+(\w+)\s+tier", IntentType.ADD_AGENT_TO_TIER, "agent", "tier"),
    _rule(r"enable\s+(\w+)\s+for\s+(\w+)\s+tier", IntentType.ENABLE_FEATURE_FOR_TIER, "feature", "tier"),
    _rule(r"disable\s+(\w+)\s+for\s+(\w+)\s+tier", IntentType.DISABLE_FEATURE_FOR_TIER, "feature", "tier"),
    _rule(r"add\s+(\w+)\s+features?\s+to\s+(\w+)\s+tier", IntentType.ADD_FEATURES_TO_TIER, "feature", "tier"),
    _rule(
        r"update\s+(\w+)-?agent\s+temperature\s+to\s+([\d.]+)",
        IntentType.UPDATE_AGENT_TEMPERATURE,
        "agent",
        "float",
    ),
    _rule(r"set\s+(\w+)-?agent\s+max\s+tokens?\s+to\s+(\d+)", IntentType.UPDATE_AGENT_MAX_TOKENS, "agent", "int"),
    _rule(
        r"set\s+(\w+)\s+tier\s+rate\s+limit\s+to\s+(\d+)\s+requests?\s+per\s+(\w+)",
        IntentType.UPDATE_TIER_RATE_LIMIT,
        "tier",
        "int",
        "period",
    ),
    _rule(r"update\s+(\w+)\s+tier\s+price\s+to\s+\$?([\d,]+)", IntentType.UPDATE_TIER_PRICE, "tier", "price"),
)

AVAILABLE_COMMANDS: tuple[dict[str, Any], ...] = (
    {
        "category": "Agent Access",
        "commands": [
            "allow {tier} to use {agent}-agent",
            "remove {agent}-agent from {tier} tier",
            "add {agent}-agent to {tier} tier",
        ],
    },
    {
        "category": "Feature Management",
        "commands": [
            "enable {feature} for {tier} tier",
            "disable {feature} for {tier} tier",
            "add {features} features to {tier} tier",
        ],
    },
    {
        "category": "Model Configuration",
        "commands": [
            "update {agent}-agent temperature to {value}",
            "set {agent}-agent max tokens to {value}",
        ],
    },
    {
        "category": "Rate Limiting",
        "commands": ["set {tier} tier rate limit to {number} requests per {period}"],
    },
    {
        "category": "Pricing",
        "commands": ["update {tier} tier price to ${amount}"],
    },
)


def normalize_command_agent(name: str) -> str:
    """
    Normalize an agent name taken from a command.

    "Science" -> "science_agent", "f8_" -> "f8_agent".
    """
    normalized = "_".join(name.strip().lower().split()).rstrip("_-")
    if not normalized.endswith("_agent"):
        normalized = f"{normalized}_agent"
    return normalized


def _convert(field: str, raw: str) -> tuple[str, Any]:
    if field == "agent":
        return "agent", normalize_command_agent(raw)
    if field in ("tier", "feature", "period"):
        return field, raw.strip().lower()
    try:
        if field == "float":
            return "value", float(raw)
        if field == "int":
            return "value", int(raw)
        if field == "price":
            return "value", int(raw.replace(",", ""))
    except ValueError as e:
        raise InvalidCommandValueError(f"Invalid number in command: {raw}") from e
    raise ValueError(f"Unknown command field: {field}")


class CommandInterpreter:
    """
    Parses admin commands into MutationIntents.

    Usage:
        intent = CommandInterpreter().parse("enable dark_mode for free tier")
    """

    def __init__(self, rules: tuple[CommandRule, ...] = COMMAND_RULES) -> None:
        self._rules = rules

    def parse(self, command: str) -> MutationIntent:
        """
        Parse a command.

        Args:
            command: Free-text admin command.

        Returns:
            Intent for the first matching rule.

        Raises:
            CommandParseError: If no rule matches.
            InvalidCommandValueError: If a numeric parameter is malformed.
        """
        text = command.strip()
        for rule in self._rules:
            match = rule.pattern.search(text)
            if match is None:
                continue
            values = dict(_convert(f, g) for f, g in zip(rule.fields, match.groups()))
            return MutationIntent(kind=rule.kind, command=command, **values)
        raise CommandParseError(command)

    def available_commands(self) -> list[dict[str, Any]]:
        """Get the grouped command help listing."""
        return [
            {"category": group["category"], "commands": list(group["commands"])}
            for group in AVAILABLE_COMMANDS
        ]
