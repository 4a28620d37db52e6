"""
LLM provider client for chat completion.

Supports two provider types:
- openai-compatible: Any OpenAI-compatible API (OpenRouter, OpenAI, vLLM, Ollama, etc.)
- anthropic: Anthropic Messages API

Provider names are normalized so short aliases in settings keep working.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from gateway.logic.exceptions import GatewayError

logger = logging.getLogger(__name__)

# Provider normalization map (aliases -> canonical names)
PROVIDER_ALIASES: dict[str, str] = {
    "openai-compatible": "openai-compatible",
    "openai_compatible": "openai-compatible",
    "openai": "openai-compatible",
    "openrouter": "openai-compatible",
    "vllm": "openai-compatible",
    "ollama": "openai-compatible",
    "anthropic": "anthropic",
}


def normalize_provider(provider: str) -> str:
    """
    Normalize provider name to canonical form.

    Args:
        provider: Raw provider string from settings.

    Returns:
        Canonical provider name: openai-compatible or anthropic.

    Raises:
        ValueError: If provider is not recognized.
    """
    normalized = provider.lower().strip()
    canonical = PROVIDER_ALIASES.get(normalized)
    if canonical:
        return canonical
    raise ValueError(f"Unknown LLM provider: {provider}")


class LLMError(GatewayError):
    """LLM request failed or returned an unusable payload."""


@dataclass
class LLMConfig:
    """LLM configuration for one call."""

    provider: str
    endpoint: str
    model_id: str
    api_key: str | None
    max_tokens: int
    temperature: float


@dataclass
class ChatMessage:
    """Chat message for LLM context."""

    role: str
    content: str


@dataclass
class Completion:
    """Completion text with the provider's token accounting, when reported."""

    text: str
    total_tokens: int | None = None


class LLMClient:
    """
    Async HTTP client for LLM providers.

    Attributes:
        timeout: HTTP request timeout in seconds.
    """

    def __init__(self, timeout: float = 30.0, client: httpx.AsyncClient | None = None) -> None:
        """
        Initialize LLM client.

        Args:
            timeout: Request timeout in seconds.
            client: Optional preconfigured HTTP client.
        """
        self._timeout = timeout
        self._client = client

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def complete(
        self,
        config: LLMConfig,
        messages: list[ChatMessage],
        timeout: float | None = None,
    ) -> Completion:
        """
        Get a chat completion.

        Args:
            config: LLM configuration.
            messages: Chat messages for context.
            timeout: Per-call timeout override in seconds.

        Returns:
            Completion with the generated text.

        Raises:
            LLMError: If the provider is unsupported or the call fails.
        """
        try:
            provider = normalize_provider(config.provider)
        except ValueError as e:
            logger.error("❌ Unsupported LLM provider: %s", config.provider)
            raise LLMError(str(e)) from e

        if provider == "anthropic":
            return await self._complete_anthropic(config, messages, timeout)
        return await self._complete_openai_compatible(config, messages, timeout)

    async def _post(
        self,
        endpoint: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        timeout: float | None,
        provider: str,
    ) -> dict[str, Any]:
        client = await self._ensure_client()
        try:
            response = await client.post(
                endpoint,
                json=payload,
                headers=headers,
                timeout=timeout if timeout is not None else self._timeout,
            )
        except httpx.HTTPError as e:
            logger.error("❌ HTTP error calling %s: %s", provider, e)
            raise LLMError(f"LLM ({provider}) request failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                "❌ LLM API error %d: %s",
                response.status_code,
                response.text[:500],
            )
            raise LLMError(f"LLM ({provider}) returned {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"LLM ({provider}) returned invalid JSON") from e
        if not isinstance(data, dict):
            raise LLMError(f"LLM ({provider}) returned unexpected payload")
        return data

    async def _complete_openai_compatible(
        self,
        config: LLMConfig,
        messages: list[ChatMessage],
        timeout: float | None,
    ) -> Completion:
        """
        Complete via an OpenAI-compatible API.

        Works with: OpenRouter, OpenAI, Azure OpenAI, vLLM, Ollama.
        """
        endpoint = config.endpoint.rstrip("/")
        if not endpoint.endswith("/chat/completions"):
            endpoint = f"{endpoint}/v1/chat/completions"

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"

        payload = {
            "model": config.model_id,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
        }

        logger.debug("🤖 Completing with %s (%s)", config.provider, config.model_id)
        data = await self._post(endpoint, payload, headers, timeout, "openai-compatible")

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError("LLM (openai-compatible) response has no message content") from e

        usage = data.get("usage") or {}
        return Completion(text=text, total_tokens=usage.get("total_tokens"))

    async def _complete_anthropic(
        self,
        config: LLMConfig,
        messages: list[ChatMessage],
        timeout: float | None,
    ) -> Completion:
        """Complete via the Anthropic Messages API."""
        endpoint = config.endpoint.rstrip("/")
        if not endpoint.endswith("/messages"):
            endpoint = f"{endpoint}/v1/messages"

        headers = {
            "Content-Type": "application/json",
            "anthropic-version": "2023-06-01",
        }
        if config.api_key:
            headers["x-api-key"] = config.api_key

        # Convert messages to Anthropic format
        system_message = ""
        anthropic_messages = []
        for m in messages:
            if m.role == "system":
                system_message = m.content
            else:
                anthropic_messages.append({"role": m.role, "content": m.content})

        payload: dict[str, Any] = {
            "model": config.model_id,
            "messages": anthropic_messages,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
        }
        if system_message:
            payload["system"] = system_message

        logger.debug("🤖 Completing with Anthropic (%s)", config.model_id)
        data = await self._post(endpoint, payload, headers, timeout, "anthropic")

        blocks = data.get("content") or []
        text = "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        total = None
        if "input_tokens" in usage or "output_tokens" in usage:
            total = usage.get("input_tokens", 0) + usage.get("output_tokens", 0)
        return Completion(text=text, total_tokens=total)
