"""Storage protocol definitions using typing.Protocol."""

from typing import Protocol

from ..models import Chat, ChatMessage, MessageRole, SearchCriteria, SearchResult


class ChatRepository(Protocol):
    """Chat lookup and the few mutations the pipeline needs."""

    async def create_chat(self, user_id: str, title: str | None = None) -> Chat:
        """Create a chat owned by the user."""
        ...

    async def find_by_id_and_user_id(self, chat_id: str, user_id: str) -> Chat | None:
        """Return the chat only if the user owns it."""
        ...

    async def update_title(self, chat_id: str, title: str) -> None:
        """Rename a chat."""
        ...


class MessageRepository(Protocol):
    """Append-only message persistence."""

    async def save(self, message: ChatMessage, reply_to: str | None = None) -> None:
        """Persist a complete message, optionally as the reply to another one."""
        ...

    async def find_by_id(self, message_id: str) -> ChatMessage | None:
        """Get a message by id."""
        ...

    async def find_reply(self, message_id: str) -> ChatMessage | None:
        """Get the assistant message saved as the reply to ``message_id``."""
        ...

    async def list_by_chat(self, chat_id: str, limit: int = 50) -> list[ChatMessage]:
        """Get the latest messages of a chat, oldest first."""
        ...

    async def count_by_chat(self, chat_id: str, role: MessageRole | None = None) -> int:
        """Count messages of a chat, optionally of one role."""
        ...


class CarCatalog(Protocol):
    """Bounded catalog search used by the orchestrator."""

    async def search(self, criteria: SearchCriteria, limit: int = 10) -> SearchResult:
        """Return the total match count and at most ``limit`` cheapest matches."""
        ...


class Store(ChatRepository, MessageRepository, CarCatalog, Protocol):
    """Everything a single backend provides, plus lifecycle hooks."""

    async def startup(self) -> None:
        """Initialize repository on startup."""
        ...

    async def shutdown(self) -> None:
        """Cleanup repository on shutdown."""
        ...

    async def health_check(self) -> bool:
        """Check if repository is healthy."""
        ...
