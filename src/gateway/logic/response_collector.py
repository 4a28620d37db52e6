"""
Response collection from local and remote agents.

Local agents are answered by the completion model with an agent-specific
prompt. Remote agents receive a single POST to their endpoint. Every
failure surfaces as AgentResponseError so callers can substitute a
user-safe message.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from gateway.catalog.schema import AgentDescriptor, LocalBackend, RemoteBackend, Tier
from gateway.config import GatewaySettings
from gateway.logic.exceptions import AgentResponseError
from gateway.logic.llm_client import ChatMessage, LLMClient, LLMConfig, LLMError

logger = logging.getLogger(__name__)

DEFAULT_AGENT_PROMPT = (
    "You are the {agent_name}, {agent_description} specializing in:\n"
    "{agent_specialties}\n\n"
    "Provide helpful, accurate, and professional responses."
)

HEALTH_CHECK_TIMEOUT = 5.0


@dataclass
class AgentResponse:
    """Text returned by an agent and the tokens it consumed, if known."""

    text: str
    total_tokens: int | None = None


def render_prompt(template: str, agent: AgentDescriptor, message: str = "") -> str:
    """
    Fill the placeholders of an agent prompt template.

    Args:
        template: Template with {agent_name}, {agent_description},
            {agent_specialties} and {message} placeholders.
        agent: Agent being prompted.
        message: User message.

    Returns:
        Rendered prompt.
    """
    specialties = "\n".join(f"- {s}" for s in agent.specialties)
    return (
        template.replace("{agent_name}", agent.name)
        .replace("{agent_description}", agent.description)
        .replace("{agent_specialties}", specialties)
        .replace("{message}", message)
    )


class ResponseCollector:
    """
    Obtains responses from agents.

    Attributes:
        settings: Gateway settings with model defaults.
    """

    def __init__(
        self,
        settings: GatewaySettings,
        llm: LLMClient,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize collector.

        Args:
            settings: Gateway settings.
            llm: LLM client for local agents.
            http: HTTP client for remote agents.
        """
        self._settings = settings
        self._llm = llm
        self._http = http

    def _ensure_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.remote_agent_timeout),
                headers={"User-Agent": "agent-gateway/0.1"},
            )
        return self._http

    async def close(self) -> None:
        """Close the remote agent HTTP client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def collect(self, agent: AgentDescriptor, message: str, tier: Tier) -> AgentResponse:
        """
        Get a response from an agent.

        Args:
            agent: Selected agent.
            message: Sanitized user message.
            tier: Caller's tier (model parameters and prompt overrides).

        Returns:
            AgentResponse with the agent's text.

        Raises:
            AgentResponseError: On any failure, timeout or malformed reply.
        """
        backend = agent.backend
        if isinstance(backend, RemoteBackend):
            return await self._collect_remote(agent, backend, message)
        if isinstance(backend, LocalBackend):
            return await self._collect_local(agent, backend, message, tier)
        raise AgentResponseError(agent.id, f"unsupported backend {type(backend).__name__}")

    async def _collect_local(
        self,
        agent: AgentDescriptor,
        backend: LocalBackend,
        message: str,
        tier: Tier,
    ) -> AgentResponse:
        settings = self._settings
        if not settings.llm_api_key:
            logger.warning("⚠️ No LLM API key configured, %s answers in basic mode", agent.id)
            return AgentResponse(
                text=(
                    f"Hello! I'm the {agent.name}. I specialize in {agent.description}. "
                    f'I can help you with your question about: "{message}". However, '
                    "I'm currently in basic mode. For full functionality, please check "
                    "the system configuration."
                )
            )

        params = tier.models.get(agent.id)
        config = LLMConfig(
            provider=settings.llm_provider,
            endpoint=settings.llm_endpoint,
            model_id=(params and params.model) or settings.llm_model,
            api_key=settings.llm_api_key,
            max_tokens=(params and params.max_tokens) or settings.llm_max_tokens,
            temperature=(
                params.temperature
                if params and params.temperature is not None
                else settings.llm_temperature
            ),
        )
        timeout = params.timeout_ms / 1000 if params and params.timeout_ms else None

        tier_template = tier.prompts.get(agent.id)
        if tier_template:
            messages = [ChatMessage(role="user", content=render_prompt(tier_template, agent, message))]
        else:
            system_prompt = render_prompt(backend.system_prompt or DEFAULT_AGENT_PROMPT, agent)
            messages = [
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=message),
            ]

        try:
            completion = await self._llm.complete(config, messages, timeout=timeout)
        except LLMError as e:
            raise AgentResponseError(agent.id, e.message) from e

        if not completion.text.strip():
            raise AgentResponseError(agent.id, "empty completion")
        return AgentResponse(text=completion.text, total_tokens=completion.total_tokens)

    async def _collect_remote(
        self,
        agent: AgentDescriptor,
        backend: RemoteBackend,
        message: str,
    ) -> AgentResponse:
        client = self._ensure_http()
        try:
            response = await client.post(
                f"{backend.endpoint}/api/chat",
                json={"message": message, "agent": agent.id},
                timeout=backend.timeout_ms / 1000,
            )
        except httpx.TimeoutException as e:
            raise AgentResponseError(agent.id, f"timed out after {backend.timeout_ms}ms") from e
        except httpx.HTTPError as e:
            raise AgentResponseError(agent.id, f"request failed: {e}") from e

        if response.status_code != 200:
            raise AgentResponseError(agent.id, f"returned {response.status_code}")

        try:
            data: Any = response.json()
        except ValueError as e:
            raise AgentResponseError(agent.id, "returned invalid JSON") from e

        if not isinstance(data, dict) or data.get("success") is not True:
            reason = data.get("message", "unknown error") if isinstance(data, dict) else "bad shape"
            raise AgentResponseError(agent.id, f"reported failure: {reason}")
        text = data.get("response")
        if not isinstance(text, str):
            raise AgentResponseError(agent.id, "response field missing")
        return AgentResponse(text=text)

    async def check_health(self, agent: AgentDescriptor) -> dict[str, Any]:
        """
        Call a remote agent's health endpoint.

        Args:
            agent: Agent to check.

        Returns:
            Status dictionary: healthy, unhealthy or down. Local agents are
            always healthy.
        """
        backend = agent.backend
        if not isinstance(backend, RemoteBackend):
            return {"name": agent.id, "type": "local", "status": "healthy"}

        client = self._ensure_http()
        try:
            response = await client.get(f"{backend.endpoint}/health", timeout=HEALTH_CHECK_TIMEOUT)
        except httpx.HTTPError as e:
            return {
                "name": agent.id,
                "type": "remote",
                "status": "down",
                "url": backend.endpoint,
                "error": str(e),
            }
        return {
            "name": agent.id,
            "type": "remote",
            "status": "healthy" if response.status_code == 200 else "unhealthy",
            "statusCode": response.status_code,
            "url": backend.endpoint,
        }
