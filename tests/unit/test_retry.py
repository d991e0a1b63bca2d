"""Test retry logic functionality."""

import asyncio

import pytest

from car_chat.exceptions import LLMConfigurationError, LLMRateLimit, LLMTimeout, LLMUnavailable
from car_chat.retry import with_llm_retry


class TestRetryDecorator:
    """Test retry decorator functionality."""

    @pytest.mark.asyncio
    async def test_success_first_try(self) -> None:
        """Test that decorator doesn't retry on success."""
        call_count = 0

        @with_llm_retry("TestProvider", initial_delay=0)
        async def test_function():
            nonlocal call_count
            call_count += 1
            return "success"

        assert await test_function() == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_success_after_rate_limit(self) -> None:
        call_count = 0

        @with_llm_retry("TestProvider", max_attempts=3, initial_delay=0)
        async def test_function():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise LLMRateLimit("429")
            return "success after retry"

        assert await test_function() == "success after retry"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        """The first call plus three retries, then the last error is re-raised unchanged."""
        call_count = 0

        @with_llm_retry("TestProvider", max_attempts=3, initial_delay=0)
        async def test_function():
            nonlocal call_count
            call_count += 1
            raise LLMUnavailable(f"503 on attempt {call_count}")

        with pytest.raises(LLMUnavailable, match="attempt 4"):
            await test_function()
        assert call_count == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [LLMConfigurationError("401"), LLMTimeout("slow")])
    async def test_non_retryable_errors(self, error: Exception) -> None:
        """Credential errors and timeouts fail on the first attempt."""
        call_count = 0

        @with_llm_retry("TestProvider", max_attempts=3, initial_delay=0)
        async def test_function():
            nonlocal call_count
            call_count += 1
            raise error

        with pytest.raises(type(error)):
            await test_function()
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_preserves_function_name(self) -> None:
        @with_llm_retry("TestProvider")
        async def my_completion():
            return None

        assert my_completion.__name__ == "my_completion"

    @pytest.mark.asyncio
    async def test_backoff_doubles_from_initial_delay(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Default policy waits 1s, 2s and 4s before giving up."""
        sleeps: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)

        @with_llm_retry("TestProvider")
        async def test_function():
            raise LLMUnavailable("503")

        with pytest.raises(LLMUnavailable):
            await test_function()
        assert sleeps == [1, 2, 4]

    @pytest.mark.asyncio
    async def test_zero_retries(self) -> None:
        call_count = 0

        @with_llm_retry("TestProvider", max_attempts=0, initial_delay=0)
        async def test_function():
            nonlocal call_count
            call_count += 1
            raise LLMRateLimit("429")

        with pytest.raises(LLMRateLimit):
            await test_function()
        assert call_count == 1
