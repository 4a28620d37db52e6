"""
Chat orchestration.

Orchestrates:
1. Input validation and plan resolution
2. Tier rate limit overrides
3. Agent selection (explicit override or two-stage routing)
4. Response collection, or command execution for the command agent
5. Response augmentation and usage accounting
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from gateway.catalog.schema import AgentDescriptor, ConfigSnapshot, Tier, normalize_agent_id
from gateway.catalog.store import SnapshotStore
from gateway.config import GatewaySettings
from gateway.logic.agent_router import AgentRouter, Classifier
from gateway.logic.augmenter import ResponseAugmenter
from gateway.logic.command_interpreter import CommandInterpreter
from gateway.logic.config_mutator import ConfigurationMutator
from gateway.logic.exceptions import (
    AgentResponseError,
    GatewayError,
    PlanAccessDeniedError,
    RateLimitedError,
    UnknownAgentError,
)
from gateway.logic.input_validator import InputValidator
from gateway.logic.plans import AccessController, PlanResolver
from gateway.logic.rate_limiter import TierRateLimits
from gateway.logic.response_collector import ResponseCollector

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


@dataclass
class ChatResult:
    """Result of one chat request."""

    response: str
    agent: str
    tier: Tier
    total_tokens: int
    cost: float
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to the chat API response body."""
        return {
            "success": True,
            "response": self.response,
            "agent": self.agent,
            "plan": self.tier.id,
            "planName": self.tier.name,
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
            "usage": {"total_tokens": self.total_tokens, "cost": self.cost},
        }


def estimate_tokens(message: str, response: str) -> int:
    """Approximate token usage at four characters per token."""
    return math.ceil((len(message) + len(response)) / CHARS_PER_TOKEN)


def format_command_result(result: dict[str, Any]) -> str:
    """Render an admin command outcome as a chat reply."""
    if not result.get("success"):
        return f"❌ {result.get('error', 'Command failed')}"
    lines = [f"✅ {result['message']}"]
    lines.extend(
        f"- {change['file']}: {change['field']} = {change['value']}"
        for change in result.get("changes", [])
    )
    return "\n".join(lines)


class CommandService:
    """
    Parses and applies admin commands.

    Shared by the admin command endpoint and the command agent.
    """

    def __init__(self, interpreter: CommandInterpreter, mutator: ConfigurationMutator) -> None:
        self.interpreter = interpreter
        self.mutator = mutator

    def execute(self, command: str) -> dict[str, Any]:
        """
        Parse and apply one command.

        Args:
            command: Free-text admin command.

        Returns:
            {success: True, message, changes} or {success: False, error}.
        """
        try:
            intent = self.interpreter.parse(command)
            return self.mutator.apply(intent).to_dict()
        except GatewayError as e:
            logger.warning("⚠️ Admin command failed: %s", e.message)
            return {"success": False, "error": e.message}


class ChatService:
    """
    Service answering chat messages.

    Usage:
        service = ChatService(settings, snapshots, collector, commands)
        result = await service.chat("What is THC?", plan="free", identity="1.2.3.4")
    """

    def __init__(
        self,
        settings: GatewaySettings,
        snapshots: SnapshotStore,
        collector: ResponseCollector,
        commands: CommandService,
        classifier: Classifier | None = None,
        augmenter: ResponseAugmenter | None = None,
        validator: InputValidator | None = None,
        tier_limits: TierRateLimits | None = None,
    ) -> None:
        """
        Initialize chat service.

        Args:
            settings: Gateway settings.
            snapshots: Configuration snapshot store.
            collector: Agent response collector.
            commands: Admin command executor for the command agent.
            classifier: Optional routing classifier.
            augmenter: Response augmenter.
            validator: Input validator.
            tier_limits: Tier rate limit override pool.
        """
        self._settings = settings
        self._snapshots = snapshots
        self._collector = collector
        self._commands = commands
        self._classifier = classifier
        self._augmenter = augmenter or ResponseAugmenter()
        self._validator = validator or InputValidator(
            settings.max_message_length,
            settings.max_username_length,
        )
        self._tier_limits = tier_limits or TierRateLimits()

    @property
    def tier_limits(self) -> TierRateLimits:
        """Tier rate limit override pool."""
        return self._tier_limits

    async def chat(
        self,
        message: Any,
        plan: Any = None,
        username: Any = None,
        agent: str | None = None,
        identity: str = "unknown",
        now_ms: int | None = None,
    ) -> ChatResult:
        """
        Answer a chat message.

        Args:
            message: Raw message text.
            plan: Raw plan value; unknown values resolve to the default tier.
            username: Optional username.
            agent: Optional explicit agent id.
            identity: Rate limit key for tier overrides.
            now_ms: Current time in epoch milliseconds (tests).

        Returns:
            ChatResult for the response body.

        Raises:
            InputValidationError: If the message is invalid.
            UnknownAgentError: If an explicit agent does not exist.
            PlanAccessDeniedError: If the plan may not use an explicit agent.
            RateLimitedError: If a tier rate limit override is exceeded.
        """
        snapshot = self._snapshots.current()
        plans = PlanResolver(snapshot)
        tier = plans.resolve_tier(plan)

        validated = self._validator.validate(message, username, tier.limits.max_message_length)

        rejected = self._tier_limits.check(tier.id, dict(tier.rate_limiting), identity, now_ms)
        if rejected is not None:
            logger.info("🚦 Tier %s rate limit exceeded for %s", tier.id, identity)
            raise RateLimitedError(
                retry_after=rejected.retry_after,
                headers={"Retry-After": str(rejected.retry_after)},
            )

        if agent:
            descriptor = self._explicit_agent(snapshot, plans, agent, tier)
        else:
            router = AgentRouter(snapshot, self._classifier, self._settings.classifier_timeout)
            decision = await router.route(validated.message, tier)
            descriptor = snapshot.agents[decision.agent_id]

        logger.info(
            "💬 %s (%s) -> %s",
            validated.username,
            tier.id,
            descriptor.id,
        )

        reported_tokens = None
        if descriptor.id == self._settings.command_agent:
            text = await self._run_command(validated.message, tier)
        else:
            try:
                response = await self._collector.collect(descriptor, validated.message, tier)
                text = response.text
                reported_tokens = response.total_tokens
            except AgentResponseError as e:
                logger.error("❌ %s", e.message)
                text = self._settings.apology_message

        text = self._augmenter.augment(text, tier, now_ms)
        total_tokens = reported_tokens or estimate_tokens(validated.message, text)
        return ChatResult(
            response=text,
            agent=descriptor.id,
            tier=tier,
            total_tokens=total_tokens,
            cost=round(total_tokens * tier.cost_per_1k_tokens / 1000, 6),
            timestamp=datetime.now(timezone.utc),
        )

    def _explicit_agent(
        self,
        snapshot: ConfigSnapshot,
        plans: PlanResolver,
        agent: str,
        tier: Tier,
    ) -> AgentDescriptor:
        agent_id = normalize_agent_id(agent)
        descriptor = snapshot.get_agent(agent_id)
        if descriptor is None:
            raise UnknownAgentError(agent_id)

        access = AccessController(snapshot)
        if descriptor.id in plans.allowed_agents(tier) and access.validate_access(descriptor.id, tier):
            return descriptor

        logger.info("🔒 Plan %s denied access to %s", tier.id, descriptor.id)
        raise PlanAccessDeniedError(
            descriptor.id,
            tier.id,
            access.allowed_plans(descriptor.id),
            upgrade_options=plans.upgrade_recommendations(descriptor.id),
        )

    async def _run_command(self, message: str, tier: Tier) -> str:
        if tier.id != self._settings.admin_plan:
            logger.warning("🚫 Command from non-admin plan %s ignored", tier.id)
            return "Only administrators can modify the configuration."
        result = await asyncio.to_thread(self._commands.execute, message)
        return format_command_result(result)
