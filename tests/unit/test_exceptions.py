"""Tests for the error taxonomy."""

import pytest

from car_chat.exceptions import (
    ChatAPIError,
    ChatNotFoundError,
    ConfigurationError,
    LLMConfigurationError,
    LLMProviderError,
    LLMRateLimit,
    LLMTimeout,
    LLMUnavailable,
    MessageNotFoundError,
    RateLimitExceeded,
    StorageError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error_class", "code", "status_code"),
    [
        (ValidationError, "validation_error", 400),
        (RateLimitExceeded, "rate_limit", 429),
        (ChatNotFoundError, "not_found", 404),
        (MessageNotFoundError, "not_found", 404),
        (LLMTimeout, "llm_timeout", 504),
        (LLMRateLimit, "llm_rate_limit", 503),
        (LLMUnavailable, "llm_unavailable", 503),
        (LLMConfigurationError, "llm_configuration", 500),
        (StorageError, "storage_error", 503),
        (ConfigurationError, "configuration_error", 500),
    ],
)
def test_codes_and_status(error_class: type[ChatAPIError], code: str, status_code: int) -> None:
    error = error_class("boom")

    assert isinstance(error, ChatAPIError)
    assert error.code == code
    assert error.status_code == status_code
    assert str(error) == "boom"


def test_provider_errors_share_a_base() -> None:
    for error_class in (LLMTimeout, LLMRateLimit, LLMUnavailable, LLMConfigurationError):
        assert issubclass(error_class, LLMProviderError)


def test_base_defaults() -> None:
    error = ChatAPIError("unexpected")
    assert error.code == "server_error"
    assert error.status_code == 500
