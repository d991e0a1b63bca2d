"""Retry logic for LLM calls using tenacity."""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import LLMRateLimit, LLMUnavailable

F = TypeVar("F", bound=Callable[..., Any])

# Transient upstream conditions. Timeouts and credential errors are not retried.
RETRYABLE_ERRORS = (LLMRateLimit, LLMUnavailable)


def with_llm_retry(
    provider_name: str,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
) -> Callable[[F], F]:
    """Decorator to add retry logic to LLM provider methods.

    Retries up to ``max_attempts`` times after the first call. The first retry
    waits ``initial_delay`` and every further one twice as long (1s, 2s, 4s with
    the defaults). Re-raises the last domain error once retries run out.

    Args:
        provider_name: Name of the provider for log messages
        max_attempts: Number of retries after the first call
        initial_delay: Delay before the first retry in seconds
        max_delay: Upper bound for a single delay in seconds

    Returns:
        Decorated function with retry logic

    """

    def decorator(func: F) -> F:
        @retry(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(max_attempts + 1),
            wait=wait_exponential(multiplier=initial_delay, min=initial_delay, max=max_delay),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"{provider_name} retry {retry_state.attempt_number}/{max_attempts}: "
                f"{retry_state.outcome.exception() if retry_state.outcome else 'Unknown error'}",
            ),
        )
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
