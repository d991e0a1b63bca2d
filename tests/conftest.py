"""Shared test fixtures."""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment before the package reads its settings
os.environ["CARCHAT_ENVIRONMENT"] = "test"
os.environ["CARCHAT_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CARCHAT_LLM_API_KEY"] = "test-key"
os.environ["CARCHAT_HTTP_RATE_LIMIT"] = "1000/minute"
os.environ["CARCHAT_STREAM_CHUNK_DELAY"] = "0"
os.environ["CARCHAT_LOG_LEVEL"] = "ERROR"  # Reduce log noise
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")  # No network fetch on litellm import

from car_chat import app  # noqa: E402
from car_chat.api import get_chat_service, get_llm_provider, get_sse_stream  # noqa: E402
from car_chat.chat import ChatService  # noqa: E402
from car_chat.llm import LLMService  # noqa: E402
from car_chat.middleware import create_token  # noqa: E402
from car_chat.models import Chat, ChatMessage  # noqa: E402
from car_chat.orchestrator import MessageOrchestrator, WordChunker  # noqa: E402
from car_chat.rate_limiter import RateLimiter  # noqa: E402
from car_chat.storage import SQLiteStore  # noqa: E402
from car_chat.streaming import SSEStream  # noqa: E402

from helpers import USER_ID  # noqa: E402
from mock_provider import MockProvider  # noqa: E402


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[SQLiteStore, None]:
    """In-memory store seeded with the demo catalog."""
    store = SQLiteStore("sqlite+aiosqlite:///:memory:")
    await store.startup()
    yield store
    await store.shutdown()


@pytest.fixture
def provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def rate_limiter() -> RateLimiter:
    return RateLimiter(limit=10, window_seconds=60)


@pytest.fixture
def orchestrator(store, provider, rate_limiter) -> MessageOrchestrator:
    return MessageOrchestrator(
        store=store,
        llm=LLMService(provider),
        rate_limiter=rate_limiter,
        chunker=WordChunker(delay=0),
        max_response_time=5,
    )


@pytest.fixture
def sse_stream(orchestrator) -> SSEStream:
    return SSEStream(orchestrator, ping_interval=15)


@pytest.fixture
def chat_service(store, rate_limiter) -> ChatService:
    return ChatService(store, rate_limiter, max_message_length=4000)


@pytest_asyncio.fixture
async def chat(store) -> Chat:
    return await store.create_chat(USER_ID)


@pytest.fixture
def submit(chat_service, chat):
    """Store a user message in the default chat the way the API does."""

    async def _submit(content: str) -> ChatMessage:
        return await chat_service.submit_message(USER_ID, chat.id, content)

    return _submit


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(USER_ID)}"}


@pytest_asyncio.fixture
async def client(chat_service, sse_stream, provider) -> AsyncGenerator[AsyncClient, None]:
    """API client wired to the in-memory store and the mock provider."""
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_sse_stream] = lambda: sse_stream
    app.dependency_overrides[get_llm_provider] = lambda: provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await sse_stream.drain()
    app.dependency_overrides.clear()
