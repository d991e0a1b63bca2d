"""Tests for the SSE stream session."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from car_chat.events import EventType, StreamEvent, parse_sse
from car_chat.models import MessageRole
from car_chat.streaming import SSEStream

from helpers import USER_ID, joined_deltas, of_type


async def drain_events(stream: SSEStream, chat, message) -> list[StreamEvent]:
    return [event async for event in stream.events(USER_ID, chat, message)]


class TestStreamEvent:
    def test_frame_format(self) -> None:
        frame = StreamEvent.content_delta("Привет ").to_sse()

        assert frame == 'event: content_delta\ndata: {"delta":"Привет "}\n\n'

    def test_terminal(self) -> None:
        assert StreamEvent.message_end("m1").is_terminal
        assert StreamEvent.error("llm_timeout", "x").is_terminal
        assert not StreamEvent.ping().is_terminal
        assert not StreamEvent.title_updated("c1", "t").is_terminal

    def test_parse_sse(self) -> None:
        events = [
            StreamEvent.message_start("m1", "c1"),
            StreamEvent.ping(),
            StreamEvent.message_end("m1", "stop"),
        ]

        assert parse_sse("".join(e.to_sse() for e in events)) == events


@pytest.mark.asyncio
async def test_stream_ends_with_single_terminal_event(sse_stream, chat, submit) -> None:
    message = await submit("привет")

    events = await drain_events(sse_stream, chat, message)

    assert events[0].type == EventType.MESSAGE_START
    assert events[-1].type == EventType.MESSAGE_END
    assert sum(e.is_terminal for e in events) == 1


@pytest.mark.asyncio
async def test_ping_on_idle(orchestrator, provider, chat, submit) -> None:
    stream = SSEStream(orchestrator, ping_interval=0.01, generate_titles=False)
    provider.set_delay("guard", 0.1)
    message = await submit("привет")

    events = await drain_events(stream, chat, message)

    pings = of_type(events, EventType.PING)
    assert pings
    assert events.index(pings[0]) > 0
    assert events[-1].is_terminal


@pytest.mark.asyncio
async def test_title_arrives_before_terminal(sse_stream, provider, store, chat, submit) -> None:
    provider.set_delay("guard", 0.05)
    provider.set_response("title", "Семейный кроссовер")
    message = await submit("ищу кроссовер для семьи")

    events = await drain_events(sse_stream, chat, message)

    [title] = of_type(events, EventType.TITLE_UPDATED)
    assert title.data == {"chatId": chat.id, "title": "Семейный кроссовер"}
    assert events.index(title) < len(events) - 1
    assert events[-1].is_terminal


@pytest.mark.asyncio
async def test_late_title_is_saved_but_not_sent(sse_stream, provider, store, chat, submit) -> None:
    provider.set_delay("title", 0.05)
    provider.set_response("title", "Поздний заголовок")
    message = await submit("привет")

    events = await drain_events(sse_stream, chat, message)
    await sse_stream.drain()

    assert of_type(events, EventType.TITLE_UPDATED) == []
    assert events[-1].is_terminal
    assert (await store.find_by_id_and_user_id(chat.id, USER_ID)).title == "Поздний заголовок"


@pytest.mark.asyncio
async def test_titles_can_be_disabled(orchestrator, provider, chat, submit) -> None:
    stream = SSEStream(orchestrator, generate_titles=False)
    message = await submit("привет")

    await drain_events(stream, chat, message)

    assert provider.calls_for("title") == []


@pytest.mark.asyncio
async def test_client_disconnect_cancels_run(sse_stream, provider, store, chat, submit) -> None:
    provider.set_delay("guard", 10)
    message = await submit("привет")

    events = sse_stream.events(USER_ID, chat, message)
    first = await anext(events)
    await events.aclose()
    await asyncio.sleep(0)

    assert first.type == EventType.MESSAGE_START
    messages = await store.list_by_chat(chat.id)
    assert [m.role for m in messages] == [MessageRole.USER]


@pytest.mark.asyncio
async def test_crashed_run_still_terminates(sse_stream, orchestrator, chat, submit, monkeypatch) -> None:
    async def broken_run(user_id, chat, user_message, emit):
        raise RuntimeError("emit failed")

    monkeypatch.setattr(orchestrator, "run", broken_run)
    monkeypatch.setattr(orchestrator, "title_event", AsyncMock(return_value=None))
    message = await submit("привет")

    events = await drain_events(sse_stream, chat, message)

    assert [e.type for e in events] == [EventType.ERROR]
    assert events[0].data["code"] == "server_error"


@pytest.mark.asyncio
async def test_frames_round_trip(sse_stream, provider, chat, submit) -> None:
    provider.set_response("guard", '{"relevant": false, "rejectionResponse": "Только про машины."}')
    message = await submit("как дела?")

    body = "".join([frame async for frame in sse_stream.frames(USER_ID, chat, message)])

    events = parse_sse(body)
    assert joined_deltas(events) == "Только про машины."
    assert events[-1].type == EventType.MESSAGE_END
