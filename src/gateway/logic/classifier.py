"""LLM-backed message classifier used by the agent router."""

import logging

from gateway.config import GatewaySettings
from gateway.logic.llm_client import ChatMessage, LLMClient, LLMConfig

logger = logging.getLogger(__name__)

# Agent ids are short; keep the answer small and deterministic
CLASSIFIER_MAX_TOKENS = 20
CLASSIFIER_TEMPERATURE = 0.1


class LLMClassifier:
    """
    Sends a routing prompt to the completion model and returns its raw text.

    Validation of the answer is the router's job.
    """

    def __init__(self, llm: LLMClient, config: LLMConfig) -> None:
        self._llm = llm
        self._config = config

    @classmethod
    def from_settings(cls, llm: LLMClient, settings: GatewaySettings) -> "LLMClassifier | None":
        """
        Build a classifier from settings.

        Args:
            llm: Shared LLM client.
            settings: Gateway settings.

        Returns:
            Classifier, or None when classification is disabled or no API
            key is configured.
        """
        if not settings.classifier_enabled:
            return None
        if not settings.llm_api_key:
            logger.warning("⚠️ No LLM API key configured, routing uses keywords only")
            return None
        return cls(
            llm,
            LLMConfig(
                provider=settings.llm_provider,
                endpoint=settings.llm_endpoint,
                model_id=settings.classifier_model,
                api_key=settings.llm_api_key,
                max_tokens=CLASSIFIER_MAX_TOKENS,
                temperature=CLASSIFIER_TEMPERATURE,
            ),
        )

    async def __call__(self, prompt: str) -> str:
        completion = await self._llm.complete(
            self._config,
            [ChatMessage(role="user", content=prompt)],
        )
        return completion.text
