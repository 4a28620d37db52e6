"""Chat input validation and sanitization."""

import logging
import re
from dataclasses import dataclass

from gateway.logic.exceptions import InputValidationError

logger = logging.getLogger(__name__)

ANONYMOUS_USERNAME = "anonymous"

SCRIPT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>",
        r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>",
        r"<object\b[^<]*(?:(?!</object>)<[^<]*)*</object>",
        r"<embed\b[^<]*(?:(?!</embed>)<[^<]*)*</embed>",
        r"javascript:",
        r"on\w+\s*=",
    )
)


def strip_scripts(text: str) -> str:
    """Remove script-like markup from text."""
    for pattern in SCRIPT_PATTERNS:
        text = pattern.sub("", text)
    return text


@dataclass(frozen=True)
class ValidatedInput:
    """Sanitized chat input."""

    message: str
    username: str


class InputValidator:
    """
    Validates chat messages and usernames.

    Messages that are empty or too long are rejected; usernames that are
    missing or invalid fall back to "anonymous".
    """

    def __init__(self, max_message_length: int = 2000, max_username_length: int = 50) -> None:
        self.max_message_length = max_message_length
        self.max_username_length = max_username_length

    def validate_message(self, message: object, max_length: int | None = None) -> str:
        """
        Validate and sanitize a chat message.

        Args:
            message: Raw message value.
            max_length: Tier-specific limit; it can only narrow the default.

        Returns:
            Sanitized message.

        Raises:
            InputValidationError: If the message is missing, empty or too long.
        """
        if not isinstance(message, str) or not message.strip():
            raise InputValidationError("Message is required")

        limit = self.max_message_length
        if max_length:
            limit = min(max_length, limit)
        text = message.strip()
        if len(text) > limit:
            raise InputValidationError(f"Message too long. Maximum {limit} characters allowed.")

        sanitized = strip_scripts(text).strip()
        if not sanitized:
            raise InputValidationError("Message is required")
        return sanitized

    def validate_username(self, username: object) -> str:
        """Sanitize a username, falling back to anonymous."""
        if not isinstance(username, str):
            return ANONYMOUS_USERNAME
        text = strip_scripts(username.strip()).strip()
        if not text or len(text) > self.max_username_length:
            logger.debug("Invalid username, using %s", ANONYMOUS_USERNAME)
            return ANONYMOUS_USERNAME
        return text

    def validate(
        self,
        message: object,
        username: object = None,
        max_length: int | None = None,
    ) -> ValidatedInput:
        """Validate a full chat request's free-text fields."""
        return ValidatedInput(
            message=self.validate_message(message, max_length),
            username=self.validate_username(username),
        )
