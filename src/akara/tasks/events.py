# src/akara/tasks/events.py

"""
Stream events delivered to subscribers, and their wire encoding.

Wire format is server-sent events: one `data: <json>` record per event,
heartbeats as an SSE comment line that consumers ignore.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .task_models import Fragment

HEARTBEAT_FRAME = ": keep-alive\n\n"


@dataclass(slots=True, frozen=True)
class ChunkEvent:
    content: str
    index: int

    @classmethod
    def from_fragment(cls, fragment: Fragment) -> ChunkEvent:
        return cls(content=fragment.text, index=fragment.index)


@dataclass(slots=True, frozen=True)
class DoneEvent:
    pass


@dataclass(slots=True, frozen=True)
class ErrorEvent:
    error: str


@dataclass(slots=True, frozen=True)
class HeartbeatEvent:
    pass


StreamEvent = ChunkEvent | DoneEvent | ErrorEvent | HeartbeatEvent
TerminalEvent = DoneEvent | ErrorEvent


def is_terminal(event: StreamEvent) -> bool:
    return isinstance(event, (DoneEvent, ErrorEvent))


def event_payload(event: StreamEvent) -> dict[str, Any] | None:
    """JSON payload of an event; None for heartbeats (they carry nothing)."""
    if isinstance(event, ChunkEvent):
        return {"type": "chunk", "content": event.content, "index": event.index}
    if isinstance(event, DoneEvent):
        return {"type": "done"}
    if isinstance(event, ErrorEvent):
        return {"type": "error", "error": event.error}
    return None


def encode_sse(event: StreamEvent) -> str:
    payload = event_payload(event)
    if payload is None:
        return HEARTBEAT_FRAME
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def decode_sse_record(record: str) -> StreamEvent | None:
    """
    Parse one SSE record (the text between blank lines).

    Comment-only records (heartbeats) and unknown payload types return None,
    so a consumer can skip anything it does not recognize.
    """
    data_lines = [line[5:].lstrip() for line in record.splitlines() if line.startswith("data:")]
    if not data_lines:
        return None
    try:
        payload = json.loads("\n".join(data_lines))
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    kind = payload.get("type")
    if kind == "chunk":
        content, index = payload.get("content"), payload.get("index")
        if not isinstance(content, str) or not isinstance(index, int) or isinstance(index, bool):
            return None
        return ChunkEvent(content=content, index=index)
    if kind == "done":
        return DoneEvent()
    if kind == "error":
        return ErrorEvent(error=str(payload.get("error", "")))
    return None
