"""
Gateway domain exceptions.

Two families live here:
- GatewayError and subclasses are raised by business logic (configuration
  documents, command parsing, agent calls).
- APIError and subclasses carry an HTTP status and are converted to
  responses by the handlers in middleware/error_handler.py.
"""

from typing import Any

from fastapi import status


class GatewayError(Exception):
    """Base exception for gateway business logic errors."""

    def __init__(self, message: str) -> None:
        """
        Initialize gateway error.

        Args:
            message: Error message.
        """
        self.message = message
        super().__init__(message)


class ConfigError(GatewayError):
    """Base class for configuration document errors."""


class PathNotAllowedError(ConfigError):
    """Configuration path is not on the allow-list."""

    def __init__(self, path: str) -> None:
        """
        Initialize path error.

        Args:
            path: The rejected path.
        """
        self.path = path
        super().__init__(f"File path not allowed: {path}")


class ConfigNotFoundError(ConfigError):
    """Configuration document does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Configuration file not found: {path}")


class ConfigParseError(ConfigError):
    """Configuration document is not valid JSON."""

    def __init__(self, path: str, reason: str) -> None:
        """
        Initialize parse error.

        Args:
            path: Document path.
            reason: Parser error description.
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Error parsing {path}: {reason}")


class ConfigValidationError(ConfigError):
    """Configuration content is structurally invalid."""


class CommandParseError(GatewayError):
    """Admin command text matched no known command pattern."""

    def __init__(self, command: str) -> None:
        """
        Initialize command parse error.

        Args:
            command: The unrecognized command text, kept verbatim.
        """
        self.command = command
        super().__init__(f'Could not parse command: "{command}"')


class TierNotFoundError(GatewayError):
    """Tier is not one of the known plans."""

    def __init__(self, tier: str) -> None:
        self.tier = tier
        super().__init__(f"Tier {tier} not found")


class AgentNotFoundError(GatewayError):
    """Agent is not in the agent catalog."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent {agent_id} not found")


class InvalidCommandValueError(GatewayError):
    """Command parameter is outside its accepted range."""


class AgentResponseError(GatewayError):
    """Agent failed to produce a usable response."""

    def __init__(self, agent_id: str, reason: str) -> None:
        """
        Initialize agent response error.

        Args:
            agent_id: Agent that failed.
            reason: Underlying cause, for logs only.
        """
        self.agent_id = agent_id
        self.reason = reason
        super().__init__(f"Agent {agent_id} failed: {reason}")


class APIError(Exception):
    """Base API exception."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        extra: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}
        self.headers = headers
        super().__init__(message)


class InputValidationError(APIError):
    """Request input failed validation."""

    def __init__(self, message: str):
        super().__init__(
            code="INPUT_VALIDATION_ERROR",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class UnknownAgentError(APIError):
    """Explicitly requested agent does not exist."""

    def __init__(self, agent_id: str):
        super().__init__(
            code="UNKNOWN_AGENT",
            message=f"Unknown agent '{agent_id}'",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class PlanAccessDeniedError(APIError):
    """Plan is not permitted to use the requested agent."""

    def __init__(
        self,
        agent_id: str,
        plan: str,
        allowed_plans: list[str],
        upgrade_options: list[dict[str, Any]] | None = None,
    ):
        self.allowed_plans = allowed_plans
        extra: dict[str, Any] = {"allowedPlans": allowed_plans}
        if upgrade_options:
            extra["upgradeOptions"] = upgrade_options
        super().__init__(
            code="PLAN_ACCESS_DENIED",
            message=f"Plan '{plan}' does not have access to agent '{agent_id}'",
            status_code=status.HTTP_403_FORBIDDEN,
            extra=extra,
        )


class RateLimitedError(APIError):
    """Caller exceeded its request budget."""

    def __init__(self, retry_after: int, headers: dict[str, str] | None = None):
        self.retry_after = retry_after
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            message="Too many requests, please try again later.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            extra={"retryAfter": retry_after},
            headers=headers,
        )


class ForbiddenError(APIError):
    """Forbidden error."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )
