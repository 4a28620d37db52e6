"""Unit tests for LLMClient."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from gateway.logic.llm_client import (
    ChatMessage,
    LLMClient,
    LLMConfig,
    LLMError,
    normalize_provider,
)


def mock_response(status_code: int = 200, payload=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = "error body"
    response.json.return_value = payload
    return response


class TestNormalizeProvider:
    """Tests for normalize_provider()."""

    @pytest.mark.parametrize("raw", ["openai", "OpenRouter", " vllm ", "openai_compatible"])
    def test_openai_aliases(self, raw: str) -> None:
        """Test OpenAI-compatible aliases."""
        assert normalize_provider(raw) == "openai-compatible"

    def test_anthropic(self) -> None:
        """Test anthropic is kept."""
        assert normalize_provider("Anthropic") == "anthropic"

    def test_unknown(self) -> None:
        """Test unknown providers are rejected."""
        with pytest.raises(ValueError):
            normalize_provider("carrier-pigeon")


class TestLLMClientComplete:
    """Tests for LLMClient.complete()."""

    @pytest.fixture
    def client(self) -> LLMClient:
        """Create LLMClient with a mocked HTTP client."""
        client = LLMClient(timeout=30.0)
        client._client = AsyncMock()
        return client

    @pytest.fixture
    def openai_config(self) -> LLMConfig:
        """Create OpenAI-compatible config."""
        return LLMConfig(
            provider="openrouter",
            endpoint="https://openrouter.ai/api",
            model_id="meta-llama/llama-3.1-8b-instruct",
            api_key="test-key",
            max_tokens=256,
            temperature=0.7,
        )

    @pytest.fixture
    def anthropic_config(self) -> LLMConfig:
        """Create Anthropic config."""
        return LLMConfig(
            provider="anthropic",
            endpoint="https://api.anthropic.com",
            model_id="claude-3-haiku",
            api_key="test-key",
            max_tokens=256,
            temperature=0.3,
        )

    @pytest.fixture
    def messages(self) -> list[ChatMessage]:
        """Create sample messages."""
        return [
            ChatMessage(role="system", content="You are helpful."),
            ChatMessage(role="user", content="Hello"),
        ]

    @pytest.mark.asyncio
    async def test_openai_compatible(self, client, openai_config, messages) -> None:
        """Test completion from an OpenAI-compatible API."""
        client._client.post.return_value = mock_response(
            payload={
                "choices": [{"message": {"content": "Hi there"}}],
                "usage": {"total_tokens": 12},
            }
        )

        completion = await client.complete(openai_config, messages)

        assert completion.text == "Hi there"
        assert completion.total_tokens == 12
        args, kwargs = client._client.post.call_args
        assert args[0] == "https://openrouter.ai/api/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        assert kwargs["json"]["messages"][0] == {"role": "system", "content": "You are helpful."}
        assert kwargs["json"]["max_tokens"] == 256

    @pytest.mark.asyncio
    async def test_openai_full_endpoint_kept(self, client, openai_config, messages) -> None:
        """Test endpoints already ending in /chat/completions are used as-is."""
        openai_config.endpoint = "http://localhost:8000/v1/chat/completions/"
        client._client.post.return_value = mock_response(
            payload={"choices": [{"message": {"content": "ok"}}]}
        )

        completion = await client.complete(openai_config, messages, timeout=2.0)

        args, kwargs = client._client.post.call_args
        assert args[0] == "http://localhost:8000/v1/chat/completions"
        assert kwargs["timeout"] == 2.0
        assert completion.total_tokens is None

    @pytest.mark.asyncio
    async def test_anthropic(self, client, anthropic_config, messages) -> None:
        """Test completion from the Anthropic API."""
        client._client.post.return_value = mock_response(
            payload={
                "content": [{"type": "text", "text": "Hi"}, {"type": "text", "text": " there"}],
                "usage": {"input_tokens": 5, "output_tokens": 3},
            }
        )

        completion = await client.complete(anthropic_config, messages)

        assert completion.text == "Hi there"
        assert completion.total_tokens == 8
        args, kwargs = client._client.post.call_args
        assert args[0] == "https://api.anthropic.com/v1/messages"
        assert kwargs["headers"]["x-api-key"] == "test-key"
        assert kwargs["json"]["system"] == "You are helpful."
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "Hello"}]
        assert kwargs["json"]["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_non_200(self, client, openai_config, messages) -> None:
        """Test non-200 responses raise LLMError."""
        client._client.post.return_value = mock_response(status_code=502)

        with pytest.raises(LLMError, match="502"):
            await client.complete(openai_config, messages)

    @pytest.mark.asyncio
    async def test_transport_error(self, client, openai_config, messages) -> None:
        """Test transport failures raise LLMError."""
        client._client.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(LLMError, match="request failed"):
            await client.complete(openai_config, messages)

    @pytest.mark.asyncio
    async def test_missing_content(self, client, openai_config, messages) -> None:
        """Test payloads without choices raise LLMError."""
        client._client.post.return_value = mock_response(payload={"choices": []})

        with pytest.raises(LLMError):
            await client.complete(openai_config, messages)

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, client, openai_config, messages) -> None:
        """Test unknown providers raise LLMError without a request."""
        openai_config.provider = "unknown"

        with pytest.raises(LLMError):
            await client.complete(openai_config, messages)
        client._client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_close(self, client) -> None:
        """Test close releases the HTTP client."""
        mock_http = client._client
        await client.close()

        mock_http.aclose.assert_awaited_once()
        assert client._client is None
