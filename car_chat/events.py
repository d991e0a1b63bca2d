"""Stream events emitted over Server-Sent Events."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    MESSAGE_START = "message_start"
    STATUS = "status"
    CONTENT_DELTA = "content_delta"
    TITLE_UPDATED = "title_updated"
    MESSAGE_END = "message_end"
    ERROR = "error"
    PING = "ping"


TERMINAL_EVENTS = frozenset({EventType.MESSAGE_END, EventType.ERROR})


@dataclass(frozen=True)
class StreamEvent:
    """One event of a stream session. Payload keys are camelCase on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def to_sse(self) -> str:
        """Encode as an SSE frame."""
        payload = json.dumps(self.data, ensure_ascii=False, separators=(",", ":"))
        return f"event: {self.type.value}\ndata: {payload}\n\n"

    @classmethod
    def message_start(cls, message_id: str, chat_id: str) -> "StreamEvent":
        return cls(EventType.MESSAGE_START, {"messageId": message_id, "chatId": chat_id})

    @classmethod
    def status(cls, stage: str) -> "StreamEvent":
        return cls(EventType.STATUS, {"stage": stage})

    @classmethod
    def content_delta(cls, delta: str) -> "StreamEvent":
        return cls(EventType.CONTENT_DELTA, {"delta": delta})

    @classmethod
    def title_updated(cls, chat_id: str, title: str) -> "StreamEvent":
        return cls(EventType.TITLE_UPDATED, {"chatId": chat_id, "title": title})

    @classmethod
    def message_end(cls, message_id: str, finish_reason: str = "stop") -> "StreamEvent":
        return cls(EventType.MESSAGE_END, {"messageId": message_id, "finishReason": finish_reason})

    @classmethod
    def error(cls, code: str, message: str) -> "StreamEvent":
        return cls(EventType.ERROR, {"code": code, "message": message})

    @classmethod
    def ping(cls) -> "StreamEvent":
        return cls(EventType.PING, {})


def parse_sse(body: str) -> list[StreamEvent]:
    """Decode a complete SSE body back into events (used by clients and tests)."""
    events: list[StreamEvent] = []
    for frame in body.split("\n\n"):
        name = None
        data_lines: list[str] = []
        for line in frame.splitlines():
            if line.startswith("event:"):
                name = line[len("event:") :].strip()
            elif line.startswith("data:"):
                data_lines.append(line[len("data:") :].strip())
        if name is None:
            continue
        data = json.loads("\n".join(data_lines)) if data_lines else {}
        events.append(StreamEvent(EventType(name), data))
    return events
