"""SSE transport: one stream session per submitted user message."""

import asyncio
from collections.abc import AsyncIterator

from loguru import logger

from .events import EventType, StreamEvent
from .models import Chat, ChatMessage
from .orchestrator import ERROR_MESSAGES, MessageOrchestrator

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class SSEStream:
    """Merges orchestrator events, chat titles and keepalive pings into one stream.

    The session ends right after the first terminal event. If the consumer
    goes away first, the orchestrator run is cancelled; a title that is
    already being generated still gets saved.
    """

    def __init__(
        self,
        orchestrator: MessageOrchestrator,
        ping_interval: float = 15.0,
        generate_titles: bool = True,
    ) -> None:
        self.orchestrator = orchestrator
        self.ping_interval = ping_interval
        self.generate_titles = generate_titles
        self._background: set[asyncio.Task] = set()

    async def events(
        self, user_id: str, chat: Chat, user_message: ChatMessage
    ) -> AsyncIterator[StreamEvent]:
        queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        producer = asyncio.create_task(self._produce(user_id, chat, user_message, queue))

        try:
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), self.ping_interval)
                except TimeoutError:
                    yield StreamEvent.ping()
                    continue

                yield event
                if event.is_terminal:
                    break
                if event.type == EventType.MESSAGE_START and self.generate_titles:
                    self._spawn(self._title(chat, user_message, queue))
        finally:
            if not producer.done():
                logger.info(f"Stream for chat {chat.id} closed early, cancelling run")
                producer.cancel()
            await asyncio.wait({producer})

    async def frames(self, user_id: str, chat: Chat, user_message: ChatMessage) -> AsyncIterator[str]:
        """Events encoded as SSE frames, ready for a streaming response body."""
        async for event in self.events(user_id, chat, user_message):
            yield event.to_sse()

    async def drain(self) -> None:
        """Wait for background title tasks still in flight."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _produce(
        self,
        user_id: str,
        chat: Chat,
        user_message: ChatMessage,
        queue: asyncio.Queue[StreamEvent],
    ) -> None:
        try:
            await self.orchestrator.run(user_id, chat, user_message, queue.put)
        except asyncio.CancelledError:
            raise
        except Exception:
            # run() reports its own failures; reaching here means emit itself broke
            logger.exception(f"Orchestrator run for chat {chat.id} crashed")
            await queue.put(StreamEvent.error("server_error", ERROR_MESSAGES["server_error"]))

    async def _title(
        self, chat: Chat, user_message: ChatMessage, queue: asyncio.Queue[StreamEvent]
    ) -> None:
        try:
            event = await self.orchestrator.title_event(chat, user_message)
        except Exception as e:
            logger.warning(f"Title generation for chat {chat.id} failed: {e}")
            return
        if event is not None:
            await queue.put(event)
