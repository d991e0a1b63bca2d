"""Domain-specific exceptions for the car chat service.

Every error carries a machine-readable ``code`` used both in HTTP error
bodies and in the ``error`` stream event.
"""


class ChatAPIError(Exception):
    """Base exception for all car chat errors."""

    code = "server_error"
    status_code = 500


class ValidationError(ChatAPIError):
    """Error related to input validation (not Pydantic)."""

    code = "validation_error"
    status_code = 400


class RateLimitExceeded(ChatAPIError):
    """User exhausted their admission window."""

    code = "rate_limit"
    status_code = 429


class ChatNotFoundError(ChatAPIError):
    """Chat does not exist or belongs to another user."""

    code = "not_found"
    status_code = 404


class MessageNotFoundError(ChatAPIError):
    """Message does not exist in the given chat."""

    code = "not_found"
    status_code = 404


class MessageAlreadyAnswered(ChatAPIError):
    """The user message already has an assistant reply."""

    code = "already_answered"
    status_code = 409


class LLMProviderError(ChatAPIError):
    """Provider call failed. Raised as is for failures a retry would not fix."""

    code = "llm_unavailable"
    status_code = 503


class LLMTimeout(LLMProviderError):
    """Provider did not answer within the configured timeout."""

    code = "llm_timeout"
    status_code = 504


class LLMRateLimit(LLMProviderError):
    """Provider answered 429."""

    code = "llm_rate_limit"


class LLMUnavailable(LLMProviderError):
    """Provider answered 502/503, refused the connection or returned nothing."""

    code = "llm_unavailable"


class LLMConfigurationError(LLMProviderError):
    """Provider rejected our credentials. Broken deployment, never retried."""

    code = "llm_configuration"
    status_code = 500


class StorageError(ChatAPIError):
    """Error related to storage operations."""

    code = "storage_error"
    status_code = 503


class ConfigurationError(ChatAPIError):
    """Error related to configuration issues."""

    code = "configuration_error"
