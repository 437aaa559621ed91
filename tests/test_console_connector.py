# tests/test_console_connector.py

from __future__ import annotations

import pytest

from akara.cli.commands import ConsoleSession
from akara.connectors import console_connector
from akara.llm.client import EngineError


def _feed(monkeypatch, lines: list[str]) -> None:
    pending = list(lines)

    async def fake_read_line(prompt: str) -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    monkeypatch.setattr(console_connector, "_read_line", fake_read_line)


@pytest.mark.asyncio
async def test_console_chat_turn_prints_stream_and_titles(state, engine, monkeypatch, capsys) -> None:
    engine.streams = [["Hello", " back"]]
    _feed(monkeypatch, ["hi there", "/exit"])
    session = ConsoleSession.new(state.settings)

    await console_connector.run_console_loop(state, session)

    out = capsys.readouterr().out
    assert "<<< akara-test: Hello back" in out
    assert session.titled
    assert state.store.get_conversation(session.conversation_id).title == "ok"
    assert [m.role for m in state.store.get_messages(session.conversation_id)] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_console_attach_replays_last_task(state, engine, monkeypatch, capsys) -> None:
    engine.streams = [["one"]]
    _feed(monkeypatch, ["question", "/attach", "/attach 5"])
    session = ConsoleSession.new(state.settings)

    await console_connector.run_console_loop(state, session)

    out = capsys.readouterr().out
    assert out.count("<<< akara-test: one") == 2
    assert "No output" in out


@pytest.mark.asyncio
async def test_console_prints_engine_errors(state, engine, monkeypatch, capsys) -> None:
    engine.streams = [[EngineError("Engine error (500): boom")]]
    _feed(monkeypatch, ["hi"])
    session = ConsoleSession.new(state.settings)

    await console_connector.run_console_loop(state, session)

    out = capsys.readouterr().out
    assert "[ENGINE] Engine error (500): boom" in out
    assert not session.titled
