"""
Configuration for the Agent Gateway.

Uses Pydantic Settings to load environment variables.
All settings prefixed with GATEWAY_ for namespace isolation.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """
    Settings for the gateway service.

    All environment variables are prefixed with GATEWAY_.
    Example: GATEWAY_CONFIG_DIR, GATEWAY_RATE_LIMIT_MAX
    """

    # Service Settings
    host: str = Field("0.0.0.0", description="HTTP server host")
    port: int = Field(8000, description="HTTP server port")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field(
        "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s - %(message)s",
        description="Log format string",
    )

    # Configuration documents
    config_dir: str = Field(
        "config",
        description="Directory holding tier, pricing, agent and routing documents",
    )

    # Plans
    plans: list[str] = Field(
        default=["free", "standard", "micro", "operator", "enterprise", "admin"],
        description="Known plan (tier) identifiers",
    )
    default_plan: str = Field("free", description="Plan used for unknown or missing values")
    admin_plan: str = Field("admin", description="Plan allowed to issue admin commands")

    # Agents
    default_agent: str = Field(
        "f8_agent",
        description="General-purpose agent used when nothing else matches",
    )
    command_agent: str = Field(
        "editor_agent",
        description="Agent whose chat messages are executed as admin commands",
    )
    fallback_agents: list[str] = Field(
        default=["f8_agent", "compliance", "formulation", "science"],
        description="Agents allowed when a tier enables none",
    )

    # Rate Limiting
    rate_limit_max: int = Field(50, description="Max requests per identity per window", ge=1)
    rate_limit_window_seconds: int = Field(
        900,
        description="Rate limit window in seconds",
        ge=1,
    )
    rate_limit_cleanup_interval: float = Field(
        60.0,
        description="Seconds between sweeps of expired rate limit records",
        gt=0,
    )

    # Input limits
    max_message_length: int = Field(2000, description="Maximum chat message length", ge=1)
    max_username_length: int = Field(50, description="Maximum username length", ge=1)

    # Classifier
    classifier_enabled: bool = Field(True, description="Use the LLM classifier for routing")
    classifier_timeout: float = Field(
        5.0,
        description="Classifier call timeout in seconds",
        gt=0,
    )
    classifier_model: str = Field(
        "meta-llama/llama-3.1-405b-instruct",
        description="Model used to classify messages",
    )

    # LLM provider
    llm_provider: str = Field("openai-compatible", description="LLM provider type")
    llm_endpoint: str = Field("https://openrouter.ai/api", description="LLM API base URL")
    llm_api_key: str | None = Field(None, description="LLM API key")
    llm_model: str = Field(
        "meta-llama/llama-3.1-8b-instruct",
        description="Default model for local agents",
    )
    llm_max_tokens: int = Field(1000, description="Default max tokens per completion", gt=0)
    llm_temperature: float = Field(0.7, description="Default sampling temperature", ge=0, le=2)
    llm_timeout: float = Field(30.0, description="LLM request timeout in seconds", gt=0)

    # Remote agents
    remote_agent_timeout: float = Field(
        30.0,
        description="Default remote agent timeout in seconds",
        gt=0,
    )

    # Admin
    admin_token: str | None = Field(
        None,
        description="Shared secret required in X-Admin-Token when set",
    )

    # HTTP middleware
    security_headers_enabled: bool = Field(
        True,
        description="Add browser security headers to responses",
    )
    request_logging_enabled: bool = Field(True, description="Log one line per HTTP request")

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )

    apology_message: str = Field(
        "I'm sorry, I couldn't process your request right now. Please try again in a moment.",
        description="Response returned when an agent fails",
    )

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is valid.

        Args:
            v: Log level string.

        Returns:
            Uppercase log level.

        Raises:
            ValueError: If log level is invalid.
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("plans", "fallback_agents")
    @classmethod
    def validate_identifiers(cls, v: list[str]) -> list[str]:
        """
        Normalize identifier lists and reject empty ones.

        Args:
            v: List of identifiers.

        Returns:
            Lowercased, de-duplicated identifiers in their original order.

        Raises:
            ValueError: If the list is empty.
        """
        normalized = list(dict.fromkeys(item.strip().lower() for item in v if item.strip()))
        if not normalized:
            raise ValueError("At least one identifier is required")
        return normalized

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        """
        Validate LLM provider name.

        Args:
            v: Provider name.

        Returns:
            Lowercase provider name.

        Raises:
            ValueError: If provider is not supported.
        """
        valid_providers = {"openai-compatible", "openai", "openrouter", "anthropic"}
        if v.lower() not in valid_providers:
            raise ValueError(
                f"Invalid LLM provider: {v}. Must be one of {valid_providers}"
            )
        return v.lower()

    @property
    def rate_limit_window_ms(self) -> int:
        """Get rate limit window in milliseconds."""
        return self.rate_limit_window_seconds * 1000


_settings: GatewaySettings | None = None


def get_settings() -> GatewaySettings:
    """
    Get gateway settings from environment.

    Returns:
        GatewaySettings instance.
    """
    global _settings
    if _settings is None:
        _settings = GatewaySettings()  # type: ignore[call-arg]
    return _settings


def reset_settings() -> None:
    """
    Reset settings for testing.

    Clears the cached settings instance.
    """
    global _settings
    _settings = None
