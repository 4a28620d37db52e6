"""Unit tests for chat input validation."""

import pytest

from gateway.logic.exceptions import InputValidationError
from gateway.logic.input_validator import ANONYMOUS_USERNAME, InputValidator, strip_scripts


class TestStripScripts:
    """Tests for strip_scripts."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("hi <script>alert(1)</script>there", "hi there"),
            ("<IFRAME src='x'></IFRAME>ok", "ok"),
            ("click javascript:void(0)", "click void(0)"),
            ("<img onerror=alert(1)>", "<img alert(1)>"),
            ("plain text", "plain text"),
        ],
    )
    def test_strip(self, raw: str, expected: str) -> None:
        """Test script-like markup is removed."""
        assert strip_scripts(raw) == expected


class TestInputValidator:
    """Tests for InputValidator."""

    @pytest.fixture
    def validator(self) -> InputValidator:
        return InputValidator(max_message_length=20, max_username_length=8)

    @pytest.mark.parametrize("message", [None, "", "   ", 42, ["hi"]])
    def test_missing_message(self, validator: InputValidator, message) -> None:
        """Test missing or non-string messages are rejected."""
        with pytest.raises(InputValidationError, match="required"):
            validator.validate_message(message)

    def test_message_trimmed(self, validator: InputValidator) -> None:
        """Test surrounding whitespace is trimmed."""
        assert validator.validate_message("  hello  ") == "hello"

    def test_message_at_limit(self, validator: InputValidator) -> None:
        """Test a message exactly at the limit is accepted."""
        assert validator.validate_message("x" * 20) == "x" * 20

    def test_message_too_long(self, validator: InputValidator) -> None:
        """Test one character over the limit is rejected."""
        with pytest.raises(InputValidationError, match="Maximum 20"):
            validator.validate_message("x" * 21)

    def test_tier_limit_overrides_default(self, validator: InputValidator) -> None:
        """Test a tier-specific limit replaces the default."""
        with pytest.raises(InputValidationError, match="Maximum 5"):
            validator.validate_message("x" * 6, max_length=5)

    def test_tier_limit_cannot_raise_default(self, validator: InputValidator) -> None:
        """Test a tier limit above the default leaves the default in force."""
        with pytest.raises(InputValidationError, match="Maximum 20"):
            validator.validate_message("x" * 21, max_length=8000)

    def test_only_script_rejected(self, validator: InputValidator) -> None:
        """Test messages that are only markup are rejected."""
        with pytest.raises(InputValidationError):
            validator.validate_message("<script>x</script>")

    @pytest.mark.parametrize("username", [None, "", 7, "much-too-long-name", "<script></script>"])
    def test_username_fallback(self, validator: InputValidator, username) -> None:
        """Test invalid usernames become anonymous."""
        assert validator.validate_username(username) == ANONYMOUS_USERNAME

    def test_validate(self, validator: InputValidator) -> None:
        """Test full validation returns both fields."""
        result = validator.validate(" hi ", " ana ")
        assert result.message == "hi"
        assert result.username == "ana"
