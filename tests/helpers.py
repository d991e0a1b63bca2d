"""Helpers shared by orchestrator, stream and scenario tests."""

from car_chat.events import EventType, StreamEvent
from car_chat.models import Chat, ChatMessage
from car_chat.orchestrator import MessageOrchestrator

USER_ID = "user-1234567890"


async def collect(
    orchestrator: MessageOrchestrator, chat: Chat, message: ChatMessage, user_id: str = USER_ID
):
    """Run the orchestrator and return the final stage with the emitted events."""
    events: list[StreamEvent] = []

    async def emit(event: StreamEvent) -> None:
        events.append(event)

    stage = await orchestrator.run(user_id, chat, message, emit)
    return stage, events


def of_type(events: list[StreamEvent], event_type: EventType) -> list[StreamEvent]:
    return [event for event in events if event.type == event_type]


def joined_deltas(events: list[StreamEvent]) -> str:
    return "".join(event.data["delta"] for event in of_type(events, EventType.CONTENT_DELTA))
