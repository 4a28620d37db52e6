"""
Two-stage agent routing.

Stage 1 asks a classifier model to name an agent; Stage 2 matches catalog
keywords in declaration order. The chosen agent is then re-checked against
the caller's tier, and a restricted Stage 2 runs over the tier's allowed
agents when the check fails.

State per request:
    Start -> Stage1Attempt -> {Stage1Hit | Stage1Miss} -> Stage2
          -> AccessCheck -> {Allowed: Done | Denied: RestrictedStage2 -> Done}
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from gateway.catalog.schema import ConfigSnapshot, Tier
from gateway.logic.plans import AccessController, PlanResolver

logger = logging.getLogger(__name__)

Classifier = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class RoutingDecision:
    """
    Outcome of routing one message.

    Attributes:
        message: Message that was routed.
        stage1: Agent named by the classifier, or None.
        stage2: Agent picked by keyword matching.
        agent_id: Final agent.
        used_fallback: Whether Stage 1 produced nothing usable.
        access_denied: Whether the first candidate failed the access check.
    """

    message: str
    stage1: str | None
    stage2: str
    agent_id: str
    used_fallback: bool
    access_denied: bool = False


class AgentRouter:
    """
    Selects an agent for a message and tier.

    Routing always yields an agent from the tier's allowed set; classifier
    errors and timeouts are absorbed into the keyword fallback.
    """

    def __init__(
        self,
        snapshot: ConfigSnapshot,
        classifier: Classifier | None = None,
        timeout: float = 5.0,
    ) -> None:
        """
        Initialize router.

        Args:
            snapshot: Configuration snapshot for this request.
            classifier: Async callable mapping a prompt to raw model text.
                None disables Stage 1.
            timeout: Classifier timeout in seconds.
        """
        self._snapshot = snapshot
        self._classifier = classifier
        timeout_ms = snapshot.routing.classifier_timeout_ms
        self._timeout = timeout_ms / 1000 if timeout_ms else timeout
        self._plans = PlanResolver(snapshot)
        self._access = AccessController(snapshot)

    def build_prompt(self, message: str) -> str:
        """Render the classification prompt for a message."""
        return self._snapshot.routing.classifier_prompt.replace(
            "{agents_list}", self._snapshot.agents_list()
        ).replace("{message}", message)

    async def classify(self, message: str) -> str | None:
        """
        Stage 1: ask the classifier for an agent id.

        Args:
            message: User message.

        Returns:
            A known agent id, or None on any failure or unknown answer.
        """
        if self._classifier is None:
            return None

        try:
            raw = await asyncio.wait_for(
                self._classifier(self.build_prompt(message)),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("⏱️ Classifier timed out after %.1fs", self._timeout)
            return None
        except Exception as e:
            logger.warning("⚠️ Classifier failed: %s", e)
            return None

        candidate = (raw or "").strip().lower()
        if candidate in self._snapshot.agents:
            logger.debug("🧠 Classifier routed to %s", candidate)
            return candidate

        logger.info("⚠️ Classifier returned unknown agent %r, using fallback", candidate[:50])
        return None

    def keyword_match(self, message: str, candidates: frozenset[str] | None = None) -> str | None:
        """
        Stage 2: first catalog agent with a keyword in the message.

        Args:
            message: User message.
            candidates: Restrict matching to these agent ids.

        Returns:
            Matching agent id, or None.
        """
        for agent in self._snapshot.agents.values():
            if candidates is not None and agent.id not in candidates:
                continue
            if agent.matches(message):
                return agent.id
        return None

    async def route(self, message: str, tier: Tier) -> RoutingDecision:
        """
        Select the agent for a message.

        Args:
            message: Sanitized user message.
            tier: Caller's resolved tier.

        Returns:
            RoutingDecision whose agent_id is in the tier's allowed set.
        """
        default_agent = self._snapshot.routing.default_agent

        stage1 = await self.classify(message)
        stage2 = self.keyword_match(message) or default_agent
        candidate = stage1 if stage1 is not None else stage2

        allowed = self._plans.allowed_agents(tier)
        if candidate in allowed and self._access.validate_access(candidate, tier):
            return RoutingDecision(
                message=message,
                stage1=stage1,
                stage2=stage2,
                agent_id=candidate,
                used_fallback=stage1 is None,
            )

        logger.info("🔒 Agent %s not available for %s tier, re-routing", candidate, tier.id)
        agent_id = self._restricted_route(message, tier, allowed, default_agent)
        return RoutingDecision(
            message=message,
            stage1=stage1,
            stage2=stage2,
            agent_id=agent_id,
            used_fallback=True,
            access_denied=True,
        )

    def _restricted_route(
        self,
        message: str,
        tier: Tier,
        allowed: frozenset[str],
        default_agent: str,
    ) -> str:
        permitted = frozenset(a for a in allowed if self._access.validate_access(a, tier))
        if not permitted:
            permitted = allowed

        match = self.keyword_match(message, permitted)
        if match is not None:
            return match
        if default_agent in permitted:
            return default_agent
        return sorted(permitted)[0]
