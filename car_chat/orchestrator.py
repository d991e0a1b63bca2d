"""Message orchestration: Guard -> Extract -> Search -> Format -> Persist -> Stream.

One ``MessageOrchestrator.run`` call answers one user message. Events are
handed to an ``emit`` callback in the order they happen; exactly one
terminal event (``message_end`` or ``error``) closes every run that is not
cancelled.
"""

import asyncio
import re
import uuid
import weakref
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

from loguru import logger

from .chat import mask_user_id
from .events import StreamEvent
from .exceptions import ChatAPIError, MessageAlreadyAnswered, RateLimitExceeded
from .llm import LLMService
from .models import Chat, ChatMessage, MessageRole
from .rate_limiter import RateLimiter
from .storage import Store

Emit = Callable[[StreamEvent], Awaitable[None]]

SEARCH_LIMIT = 10
HISTORY_WINDOW = 4

# Client-facing text per error code. Upstream details stay in the logs.
ERROR_MESSAGES = {
    "rate_limit": "Слишком много сообщений. Попробуйте через минуту.",
    "already_answered": "На это сообщение уже дан ответ.",
    "llm_timeout": "Ассистент не успел ответить. Попробуйте ещё раз.",
    "llm_rate_limit": "Сервис перегружен. Попробуйте чуть позже.",
    "llm_unavailable": "Сервис временно недоступен. Попробуйте чуть позже.",
    "llm_configuration": "Сервис временно недоступен.",
    "storage_error": "Не удалось сохранить ответ. Попробуйте ещё раз.",
    "server_error": "Внутренняя ошибка сервера.",
}


class Stage(str, Enum):
    ADMITTED = "admitted"
    GUARD_CHECKING = "guard_checking"
    REJECTED = "rejected"
    EXTRACTING = "extracting"
    NEEDS_CLARIFICATION = "needs_clarification"
    SEARCHING = "searching"
    FORMATTING = "formatting"
    PERSISTING = "persisting"
    STREAMED = "streamed"
    ERRORED = "errored"


# Stages announced to the client with a status event before the work starts.
ANNOUNCED_STAGES = frozenset({Stage.EXTRACTING, Stage.SEARCHING, Stage.FORMATTING})


class TextChunker(Protocol):
    """Turns a finished answer into ``content_delta`` fragments."""

    def chunks(self, text: str) -> AsyncIterator[str]: ...


class WordChunker:
    """Word-sized fragments with a small delay, emulating incremental generation.

    Fragments keep their whitespace, so joining them gives back the text.
    """

    _WORD_RE = re.compile(r"\s*\S+\s*")

    def __init__(self, delay: float = 0.03) -> None:
        self.delay = delay

    def split(self, text: str) -> list[str]:
        return self._WORD_RE.findall(text) or ([text] if text else [])

    async def chunks(self, text: str) -> AsyncIterator[str]:
        for index, fragment in enumerate(self.split(text)):
            if index and self.delay:
                await asyncio.sleep(self.delay)
            yield fragment


@dataclass
class RunState:
    """Current stage of one run, for transition logging and error reports."""

    chat_id: str
    stage: Stage = Stage.ADMITTED

    def advance(self, stage: Stage) -> None:
        logger.debug(f"Chat {self.chat_id}: {self.stage.value} -> {stage.value}")
        self.stage = stage


class MessageOrchestrator:
    """State machine answering one user message per run."""

    def __init__(
        self,
        store: Store,
        llm: LLMService,
        rate_limiter: RateLimiter,
        chunker: TextChunker | None = None,
        max_response_time: float = 120.0,
    ) -> None:
        self.store = store
        self.llm = llm
        self.rate_limiter = rate_limiter
        self.chunker = chunker or WordChunker()
        self.max_response_time = max_response_time
        self._chat_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _chat_lock(self, chat_id: str) -> asyncio.Lock:
        """Runs on the same chat are serialized so persisted messages keep causal order."""
        lock = self._chat_locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._chat_locks[chat_id] = lock
        return lock

    async def run(
        self, user_id: str, chat: Chat, user_message: ChatMessage, emit: Emit
    ) -> Stage:
        """Answer ``user_message`` and report progress through ``emit``.

        Returns the terminal stage: ``streamed`` or ``errored``. Cancellation
        propagates; nothing is persisted if it arrives before ``persisting``.
        The deadline covers everything up to the answer text. Once
        ``persisting`` starts the answer is committed whatever happens next.
        """
        assistant_id = str(uuid.uuid4())
        state = RunState(chat_id=chat.id)
        await emit(StreamEvent.message_start(assistant_id, chat.id))
        deadline = asyncio.get_running_loop().time() + self.max_response_time

        try:
            lock = self._chat_lock(chat.id)
            async with asyncio.timeout_at(deadline):
                await lock.acquire()
            try:
                async with asyncio.timeout_at(deadline):
                    answer = await self._answer(user_id, chat, user_message, state, emit)
                state.advance(Stage.PERSISTING)
                await self.store.save(
                    ChatMessage(
                        id=assistant_id,
                        chat_id=chat.id,
                        role=MessageRole.ASSISTANT,
                        content=answer,
                        created_at=datetime.now(UTC),
                    ),
                    reply_to=user_message.id,
                )
            finally:
                lock.release()

            state.advance(Stage.STREAMED)
            async for fragment in self.chunker.chunks(answer):
                await emit(StreamEvent.content_delta(fragment))
            await emit(StreamEvent.message_end(assistant_id, "stop"))
        except asyncio.CancelledError:
            logger.info(f"Run for chat {chat.id} cancelled during {state.stage.value}")
            raise
        except ChatAPIError as e:
            failed_at = state.stage
            state.advance(Stage.ERRORED)
            logger.warning(f"Run for chat {chat.id} failed during {failed_at.value}: {e}")
            await emit(StreamEvent.error(e.code, ERROR_MESSAGES.get(e.code, str(e))))
        except TimeoutError:
            failed_at = state.stage
            state.advance(Stage.ERRORED)
            logger.warning(
                f"Run for chat {chat.id} exceeded {self.max_response_time}s during {failed_at.value}"
            )
            await emit(StreamEvent.error("llm_timeout", ERROR_MESSAGES["llm_timeout"]))
        except Exception:
            failed_at = state.stage
            state.advance(Stage.ERRORED)
            logger.exception(f"Unexpected error in run for chat {chat.id} during {failed_at.value}")
            await emit(StreamEvent.error("server_error", ERROR_MESSAGES["server_error"]))
        else:
            logger.info(
                "Answer streamed",
                chat_id=chat.id,
                message_id=assistant_id,
                user_id=mask_user_id(user_id),
            )
        return state.stage

    async def _answer(
        self,
        user_id: str,
        chat: Chat,
        user_message: ChatMessage,
        state: RunState,
        emit: Emit,
    ) -> str:
        """Walk the pipeline up to the final answer text."""
        # Checked under the chat lock so concurrent streams answer once
        if await self.store.find_reply(user_message.id) is not None:
            raise MessageAlreadyAnswered(f"Message {user_message.id} already has an answer")
        if not await self.rate_limiter.try_admit(user_id):
            raise RateLimitExceeded(f"User {mask_user_id(user_id)} exceeded the message limit")

        await self._enter(state, Stage.GUARD_CHECKING, emit)
        guard = await self.llm.guard(user_message.content)
        if not guard.relevant:
            await self._enter(state, Stage.REJECTED, emit)
            return guard.rejection_response or ""

        await self._enter(state, Stage.EXTRACTING, emit)
        extract = await self.llm.extract(await self._extraction_input(chat, user_message))
        if not extract.ready_to_search or extract.criteria is None:
            await self._enter(state, Stage.NEEDS_CLARIFICATION, emit)
            return extract.clarification_question or ""

        await self._enter(state, Stage.SEARCHING, emit)
        result = await self.store.search(extract.criteria, limit=SEARCH_LIMIT)
        logger.debug(f"Chat {chat.id}: {result.count} cars match {extract.criteria.summary()}")

        await self._enter(state, Stage.FORMATTING, emit)
        return await self.llm.format(extract.criteria.summary(), result)

    async def _enter(self, state: RunState, stage: Stage, emit: Emit) -> None:
        state.advance(stage)
        if stage in ANNOUNCED_STAGES:
            await emit(StreamEvent.status(stage.value))

    async def _extraction_input(self, chat: Chat, user_message: ChatMessage) -> str:
        """Current message preceded by the user's recent turns in this chat.

        Criteria given across several messages (an answer to a clarification
        question) are then extracted together.
        """
        history = await self.store.list_by_chat(chat.id, limit=HISTORY_WINDOW * 2 + 1)
        earlier = [
            m.content
            for m in history
            if m.role == MessageRole.USER
            and m.id != user_message.id
            and m.created_at <= user_message.created_at
        ][-HISTORY_WINDOW:]
        if not earlier:
            return user_message.content
        return "\n".join([*earlier, user_message.content])

    async def title_event(self, chat: Chat, user_message: ChatMessage) -> StreamEvent | None:
        """Name an untitled chat after its first user message."""
        if chat.title:
            return None
        if await self.store.count_by_chat(chat.id, role=MessageRole.USER) != 1:
            return None

        title = await self.llm.generate_title(user_message.content)
        if not title:
            return None
        await self.store.update_title(chat.id, title)
        logger.info(f"Chat {chat.id} titled {title!r}")
        return StreamEvent.title_updated(chat.id, title)
