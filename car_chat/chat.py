"""Chat service: submitting user messages and chat lookups."""

import uuid
from datetime import UTC, datetime

from loguru import logger

from .exceptions import (
    ChatNotFoundError,
    MessageAlreadyAnswered,
    MessageNotFoundError,
    StorageError,
    ValidationError,
)
from .models import Chat, ChatMessage, MessageRole
from .rate_limiter import RateLimiter
from .storage import Store
from .types import HealthStatus


def mask_user_id(user_id: str) -> str:
    return user_id[:8] + "..." if len(user_id) > 8 else user_id


class ChatService:
    """Chat service handling message submission and history."""

    def __init__(self, store: Store, rate_limiter: RateLimiter, max_message_length: int) -> None:
        """Initialize with injected dependencies."""
        self.store = store
        self.rate_limiter = rate_limiter
        self.max_message_length = max_message_length

    async def create_chat(self, user_id: str, title: str | None = None) -> Chat:
        chat = await self.store.create_chat(user_id, title)
        logger.info("Chat created", chat_id=chat.id, user_id=mask_user_id(user_id))
        return chat

    async def get_chat(self, user_id: str, chat_id: str) -> Chat:
        """Return the chat if the user owns it."""
        chat = await self.store.find_by_id_and_user_id(chat_id, user_id)
        if chat is None:
            raise ChatNotFoundError(f"Chat {chat_id} not found")
        return chat

    async def submit_message(self, user_id: str, chat_id: str, content: str) -> ChatMessage:
        """Validate and persist a user message before any streaming starts.

        Raises ``RateLimitExceeded`` when the user has no admission left; the
        slot itself is consumed when the stream runs.
        """
        content = content.strip() if content else ""
        if not content:
            raise ValidationError("Message content cannot be empty")
        if len(content) > self.max_message_length:
            raise ValidationError(
                f"Message is too long (max {self.max_message_length} characters)"
            )

        chat = await self.get_chat(user_id, chat_id)
        await self.rate_limiter.ensure_capacity(user_id)

        message = ChatMessage(
            id=str(uuid.uuid4()),
            chat_id=chat.id,
            role=MessageRole.USER,
            content=content,
            created_at=datetime.now(UTC),
        )
        try:
            await self.store.save(message)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to save user message: {e}")
            raise StorageError(f"Failed to save message: {e}") from e

        logger.debug("User message stored", message_id=message.id, chat_id=chat.id)
        return message

    async def get_user_message(self, chat: Chat, message_id: str) -> ChatMessage:
        """Return the unanswered user message a stream refers to.

        A stream is opened once per message. Reconnects after the answer was
        stored get ``MessageAlreadyAnswered`` instead of a second answer.
        """
        message = await self.store.find_by_id(message_id)
        if message is None or message.chat_id != chat.id or message.role != MessageRole.USER:
            raise MessageNotFoundError(f"Message {message_id} not found")
        if await self.store.find_reply(message.id) is not None:
            raise MessageAlreadyAnswered(f"Message {message_id} already has an answer")
        return message

    async def get_history(self, user_id: str, chat_id: str, limit: int = 50) -> list[ChatMessage]:
        chat = await self.get_chat(user_id, chat_id)
        return await self.store.list_by_chat(chat.id, limit)

    async def health_check(self, llm_ok: bool) -> HealthStatus:
        """Check health of all components."""
        try:
            storage_ok = await self.store.health_check()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Storage health check failed: {e}")
            storage_ok = False
        return {"storage": storage_ok, "llm": llm_ok}
