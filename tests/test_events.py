# tests/test_events.py

from __future__ import annotations

from akara.tasks.events import (
    HEARTBEAT_FRAME,
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    HeartbeatEvent,
    decode_sse_record,
    encode_sse,
    is_terminal,
)
from akara.tasks.task_models import Fragment


def test_encode_keeps_unicode_and_index() -> None:
    frame = encode_sse(ChunkEvent.from_fragment(Fragment(index=3, text="héllo\n")))
    assert frame == 'data: {"type": "chunk", "content": "héllo\\n", "index": 3}\n\n'


def test_error_and_heartbeat_frames() -> None:
    assert encode_sse(ErrorEvent("Engine error (500): boom")) == (
        'data: {"type": "error", "error": "Engine error (500): boom"}\n\n'
    )
    assert encode_sse(HeartbeatEvent()) == HEARTBEAT_FRAME


def test_decode_chunk_done_error() -> None:
    assert decode_sse_record('data: {"type": "chunk", "content": "a", "index": 2}') == ChunkEvent("a", 2)
    assert decode_sse_record('data: {"type": "done"}') == DoneEvent()
    assert decode_sse_record('data: {"type": "error", "error": "x"}') == ErrorEvent("x")


def test_decode_ignores_heartbeats_and_unknown_records() -> None:
    assert decode_sse_record(HEARTBEAT_FRAME.strip()) is None
    assert decode_sse_record('data: {"type": "progress"}') is None
    assert decode_sse_record("data: not json") is None
    assert decode_sse_record("data: [1, 2]") is None
    assert decode_sse_record('data: {"type": "chunk", "content": "a", "index": "x"}') is None
    assert decode_sse_record('data: {"type": "chunk", "index": 0}') is None


def test_terminal_events() -> None:
    assert is_terminal(DoneEvent())
    assert is_terminal(ErrorEvent("x"))
    assert not is_terminal(ChunkEvent("a", 0))
    assert not is_terminal(HeartbeatEvent())
