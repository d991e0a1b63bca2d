"""FastAPI application and route handlers."""

import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded as HTTPRateLimitExceeded
from slowapi.util import get_remote_address

from . import __version__
from .chat import ChatService, mask_user_id
from .config import settings
from .exceptions import ChatAPIError, LLMConfigurationError
from .llm import LLMService
from .middleware import add_request_id, create_token, get_current_user, get_stream_user
from .models import Chat, ChatMessage, CreateChatRequest, SendMessageRequest, SendMessageResponse
from .orchestrator import ERROR_MESSAGES, MessageOrchestrator, WordChunker
from .providers import LLMProvider, create_llm_provider
from .rate_limiter import create_rate_limiter
from .storage import create_store
from .streaming import SSE_HEADERS, SSEStream

_chat_service: ChatService | None = None
_sse_stream: SSEStream | None = None
_llm_provider: LLMProvider | None = None


def configure_logging() -> None:
    """Configure logging - should be called at startup, not import time."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        serialize=False,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level=settings.log_level,
        )


def get_limiter() -> Limiter:
    """Per-IP HTTP limit in front of the per-user message admission."""
    return Limiter(key_func=get_remote_address, default_limits=[settings.http_rate_limit])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    global _chat_service, _sse_stream, _llm_provider
    configure_logging()

    store = create_store()
    llm_provider = create_llm_provider()
    rate_limiter = create_rate_limiter()

    await store.startup()

    orchestrator = MessageOrchestrator(
        store=store,
        llm=LLMService(llm_provider),
        rate_limiter=rate_limiter,
        chunker=WordChunker(settings.stream_chunk_delay),
        max_response_time=settings.max_response_time,
    )
    _chat_service = ChatService(store, rate_limiter, settings.max_message_length)
    _sse_stream = SSEStream(
        orchestrator,
        ping_interval=settings.ping_interval,
        generate_titles=settings.generate_titles,
    )
    _llm_provider = llm_provider

    logger.info(f"Application started successfully in {settings.environment} environment")

    yield

    await _sse_stream.drain()
    await store.shutdown()
    _chat_service = None
    _sse_stream = None
    _llm_provider = None
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Car Chat API",
    version=__version__,
    description="Car selection assistant streaming answers over SSE",
    lifespan=lifespan,
)

app.middleware("http")(add_request_id)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = get_limiter()
app.state.limiter = limiter  # Required by slowapi


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code, "message": message})


async def http_rate_limit_handler(request: Request, exc: HTTPRateLimitExceeded) -> JSONResponse:
    logger.warning(f"HTTP rate limit hit: {exc.detail}")
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS, "rate_limit", ERROR_MESSAGES["rate_limit"]
    )


app.add_exception_handler(HTTPRateLimitExceeded, http_rate_limit_handler)  # type: ignore[arg-type]


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle validation errors with clean messages."""
    error_messages = []

    for error in exc.errors():
        field = error["loc"][-1] if error["loc"] else "field"
        message = error.get("msg", f"Invalid {field}")

        match error["type"]:
            case "missing":
                message = f"Required field '{field}' is missing"
            case "json_invalid":
                message = "Invalid JSON format"

        error_messages.append(message)

    return error_response(status.HTTP_400_BAD_REQUEST, "validation_error", "; ".join(error_messages))


app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


@app.exception_handler(ChatAPIError)
async def chat_api_exception_handler(request: Request, exc: ChatAPIError) -> JSONResponse:
    """Map domain errors to ``{code, message}`` bodies."""
    if isinstance(exc, LLMConfigurationError):
        logger.critical(f"LLM configuration error: {exc}")
    elif exc.status_code >= 500:
        logger.error(f"Chat API error: {exc}")
    else:
        logger.info(f"Request rejected: {exc.code}: {exc}")

    # 5xx details stay in the logs
    message = ERROR_MESSAGES.get(exc.code, str(exc)) if exc.status_code >= 500 else str(exc)
    return error_response(exc.status_code, exc.code, message)


def get_chat_service() -> ChatService:
    """Get chat service singleton."""
    if _chat_service is None:
        raise RuntimeError("Service not initialized")
    return _chat_service


def get_sse_stream() -> SSEStream:
    if _sse_stream is None:
        raise RuntimeError("Service not initialized")
    return _sse_stream


def get_llm_provider() -> LLMProvider:
    if _llm_provider is None:
        raise RuntimeError("Service not initialized")
    return _llm_provider


@app.post("/login", tags=["auth"])
async def login_endpoint(
    user_id: str = Body(..., embed=True, min_length=3, max_length=100),
) -> dict[str, str]:
    """Demo login endpoint issuing a JWT for any user id."""
    token = create_token(user_id)
    return {"access_token": token, "token_type": "bearer"}


@app.post("/chats", tags=["chat"], status_code=status.HTTP_201_CREATED)
async def create_chat_endpoint(
    service: Annotated[ChatService, Depends(get_chat_service)],
    user_id: Annotated[str, Depends(get_current_user)],
    body: CreateChatRequest | None = None,
) -> Chat:
    return await service.create_chat(user_id, body.title if body else None)


@app.get("/chats/{chat_id}/messages", tags=["chat"])
async def history_endpoint(
    chat_id: str,
    service: Annotated[ChatService, Depends(get_chat_service)],
    user_id: Annotated[str, Depends(get_current_user)],
    limit: int = Query(50, ge=1, le=200),
) -> list[ChatMessage]:
    """Messages of a chat, oldest first."""
    return await service.get_history(user_id, chat_id, limit)


@app.post("/chats/{chat_id}/messages", tags=["chat"], status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.http_rate_limit)
async def send_message_endpoint(
    request: Request,
    chat_id: str,
    body: SendMessageRequest,
    service: Annotated[ChatService, Depends(get_chat_service)],
    user_id: Annotated[str, Depends(get_current_user)],
) -> SendMessageResponse:
    """Store a user message and hand out the URL its answer streams from.

    Nothing reaches the LLM until the stream URL is opened.
    """
    message = await service.submit_message(user_id, chat_id, body.content)
    logger.info(
        "User message accepted",
        chat_id=chat_id,
        message_id=message.id,
        user_id=mask_user_id(user_id),
    )
    return SendMessageResponse(
        user_message=message,
        stream_url=f"/chats/{chat_id}/messages/stream?messageId={message.id}",
    )


@app.get("/chats/{chat_id}/messages/stream", tags=["chat"])
async def stream_endpoint(
    chat_id: str,
    service: Annotated[ChatService, Depends(get_chat_service)],
    stream: Annotated[SSEStream, Depends(get_sse_stream)],
    user_id: Annotated[str, Depends(get_stream_user)],
    message_id: str = Query(..., alias="messageId", min_length=1),
) -> StreamingResponse:
    """Answer a stored user message as a Server-Sent Events stream."""
    chat = await service.get_chat(user_id, chat_id)
    user_message = await service.get_user_message(chat, message_id)
    return StreamingResponse(
        stream.frames(user_id, chat, user_message),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/health", tags=["health"])
async def health_endpoint(
    response: Response,
    service: Annotated[ChatService, Depends(get_chat_service)],
    provider: Annotated[LLMProvider, Depends(get_llm_provider)],
    detailed: bool = Query(False, description="Include configuration details"),
) -> dict[str, Any]:
    """Check health status of all components."""
    services = await service.health_check(await provider.health_check())
    all_healthy = all(services.values())

    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    result: dict[str, Any] = {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": services,
    }

    if detailed:
        result["version"] = __version__
        result["environment"] = settings.environment
        result["config"] = {
            "llm_model": settings.llm_model,
            "rate_limit_per_minute": settings.rate_limit_per_minute,
            "ping_interval": settings.ping_interval,
        }

    return result


@app.get("/", tags=["health"])
async def root_endpoint() -> dict[str, str]:
    """API information endpoint."""
    return {
        "name": "Car Chat API",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }


app.openapi_tags = [
    {"name": "chat", "description": "Chats, messages and answer streams"},
    {"name": "health", "description": "Health checks"},
    {"name": "auth", "description": "Authentication"},
]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    return app
