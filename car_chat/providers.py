"""LLM provider abstractions using Strategy Pattern."""

import asyncio
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

import litellm
from loguru import logger

from .exceptions import (
    ConfigurationError,
    LLMConfigurationError,
    LLMProviderError,
    LLMRateLimit,
    LLMTimeout,
    LLMUnavailable,
)
from .retry import with_llm_retry
from .types import TokenUsage

UNAVAILABLE_STATUS_CODES = frozenset({502, 503})


def setup_litellm() -> None:
    """Setup litellm configuration."""
    litellm.set_verbose = False
    litellm.drop_params = True
    litellm.suppress_debug_info = True

    os.environ["LITELLM_LOG"] = "INFO"


@dataclass
class LLMConfig:
    """Configuration for LLM providers."""

    model: str
    api_key: str | None = None
    base_url: str | None = None
    timeout: int = 30
    max_attempts: int = 3
    initial_delay: float = 1.0


@dataclass
class LLMResponse:
    """Standard response from LLM providers."""

    content: str
    model: str
    usage: TokenUsage


class LLMProvider(Protocol):
    """Protocol for LLM providers."""

    last_usage: TokenUsage | None

    async def chat(
        self, system_prompt: str, user_message: str, temperature: float
    ) -> LLMResponse: ...

    async def health_check(self) -> bool: ...


def classify_error(provider_name: str, error: Exception) -> LLMProviderError:
    """Map a transport exception onto the domain taxonomy.

    Only 429, 502/503 and connection failures become retryable errors. Anything
    else, a bad request or a 500 for instance, is a plain ``LLMProviderError``.
    """
    if isinstance(error, LLMProviderError):
        return error
    if isinstance(error, litellm.Timeout | TimeoutError | asyncio.TimeoutError):
        return LLMTimeout(f"{provider_name} request timed out")

    status_code = getattr(error, "status_code", None)
    if isinstance(error, litellm.AuthenticationError) or status_code == 401:
        return LLMConfigurationError(f"{provider_name} rejected the API key")
    if isinstance(error, litellm.RateLimitError) or status_code == 429:
        return LLMRateLimit(f"{provider_name} rate limit exceeded")
    if (
        isinstance(error, litellm.ServiceUnavailableError | litellm.APIConnectionError)
        or status_code in UNAVAILABLE_STATUS_CODES
        or isinstance(error, ConnectionError)
    ):
        return LLMUnavailable(f"{provider_name} unavailable: {error}")
    return LLMProviderError(f"{provider_name} completion failed: {error}")


class LiteLLMProvider:
    """Chat-completion provider backed by litellm."""

    def __init__(self, config: LLMConfig, provider_name: str = "LLM") -> None:
        """Initialize the provider.

        Args:
            config: LLM configuration
            provider_name: Name of the provider for logging
        """
        self.config = config
        self.provider_name = provider_name
        self.last_usage: TokenUsage | None = None

        if not config.api_key:
            raise ConfigurationError(f"{provider_name} API key is required")

        setup_litellm()
        self._chat_with_retry = with_llm_retry(
            provider_name,
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay,
        )(self._chat_once)

    async def chat(self, system_prompt: str, user_message: str, temperature: float) -> LLMResponse:
        """Run one chat completion, retrying transient upstream failures."""
        response = await self._chat_with_retry(system_prompt, user_message, temperature)
        self.last_usage = response.usage
        return response

    async def _chat_once(
        self, system_prompt: str, user_message: str, temperature: float
    ) -> LLMResponse:
        try:
            response = await litellm.acompletion(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=temperature,
                timeout=self.config.timeout,
                api_key=self.config.api_key,
                base_url=self.config.base_url,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = classify_error(self.provider_name, e)
            if isinstance(error, LLMConfigurationError):
                logger.critical(f"{self.provider_name} authentication failed, check deployment: {e}")
            else:
                logger.error(f"{self.provider_name} completion failed: {e}")
            raise error from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise LLMUnavailable(f"{self.provider_name} returned an empty completion")

        usage = self._extract_usage(response)
        if usage:
            logger.info(
                "Token usage",
                model=response.model,
                prompt_tokens=usage.get("prompt_tokens"),
                completion_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
            )

        return LLMResponse(content=content, model=response.model, usage=usage)

    def _extract_usage(self, response: Any) -> TokenUsage:
        """Extract usage data from response."""
        typed_usage: TokenUsage = {}

        if response.usage:
            usage_data = response.usage.model_dump()

            for field in ["prompt_tokens", "completion_tokens", "total_tokens"]:
                if field in usage_data:
                    typed_usage[field] = usage_data[field]  # type: ignore[literal-required]

            try:
                cost = litellm.completion_cost(completion_response=response)
                if cost is not None:
                    typed_usage["cost_usd"] = Decimal(str(cost))
            except Exception as e:  # noqa: BLE001
                logger.debug(f"Cost calculation not available for {response.model}: {e}")

        return typed_usage

    async def health_check(self) -> bool:
        """Check if provider is configured."""
        return bool(self.config.api_key)


def create_llm_provider() -> LLMProvider:
    """Factory function to create the configured LLM provider."""
    from .config import settings

    if not settings.llm_configured:
        raise ConfigurationError(
            "No LLM provider configured. Set the CARCHAT_LLM_API_KEY environment variable"
        )

    logger.info(f"Using LLM model {settings.llm_model}")
    config = LLMConfig(
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout,
        max_attempts=settings.retry_max_attempts,
        initial_delay=settings.retry_initial_delay,
    )
    return LiteLLMProvider(config, "LLM")
