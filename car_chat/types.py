"""Type definitions for the car chat service."""

from decimal import Decimal

from typing_extensions import TypedDict


class TokenUsage(TypedDict, total=False):
    """Token usage information from LLM API."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost_usd: Decimal


class HealthStatus(TypedDict):
    """Health status of system components."""

    storage: bool
    llm: bool
