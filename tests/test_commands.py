# tests/test_commands.py

from __future__ import annotations

import pytest

from akara.cli.commands import CommandRegistry, ConsoleSession, registry


@pytest.fixture()
def session(settings) -> ConsoleSession:
    return ConsoleSession.new(settings)


@pytest.mark.asyncio
async def test_command_registry_routes_sync_and_async_handlers(state, session) -> None:
    reg = CommandRegistry()
    called = {"sync": 0, "async": 0}

    def h_sync(state, session, args):
        called["sync"] += 1
        return f"sync {args}"

    async def h_async(state, session, args):
        called["async"] += 1
        return "async"

    reg.register("a", h_sync, "a", aliases=["aa"])
    reg.register("b", h_async, "b")

    assert await reg.handle(state, session, "/a x") == "sync ['x']"
    assert await reg.handle(state, session, "/AA") == "sync []"
    assert await reg.handle(state, session, "/b y") == "async"
    assert called == {"sync": 2, "async": 1}
    assert "/a - a" in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state, session) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, session, "hello") is None
    assert "Unknown command" in (await reg.handle(state, session, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, session, "/") or "")


@pytest.mark.asyncio
async def test_tool_toggles_change_session_options(state, session) -> None:
    assert session.options.search_enabled is False

    assert await registry.handle(state, session, "/search on") == "Search enabled."
    assert await registry.handle(state, session, "/code on") == "Code execution enabled."
    assert session.options.search_enabled and session.options.code_enabled
    assert "ON" in await registry.handle(state, session, "/search")

    status = await registry.handle(state, session, "/status")
    assert "Search+Code" in status


@pytest.mark.asyncio
async def test_new_open_list_delete(state, session) -> None:
    state.store.create_conversation("abc-123", title="Old chat")
    state.store.add_message("abc-123", "user", "hello again")
    first = session.conversation_id

    assert "New conversation" in await registry.handle(state, session, "/new")
    assert session.conversation_id != first

    opened = await registry.handle(state, session, "/open abc")
    assert session.conversation_id == "abc-123"
    assert "[user] hello again" in opened
    assert "Old chat" in await registry.handle(state, session, "/ls")

    assert "Deleted" in await registry.handle(state, session, "/delete")
    assert state.store.get_conversation("abc-123") is None
    assert session.conversation_id != "abc-123"


@pytest.mark.asyncio
async def test_title_command(state, session) -> None:
    assert await registry.handle(state, session, "/title") == "Nothing to title yet."
    state.store.create_conversation(session.conversation_id)

    assert await registry.handle(state, session, "/title My notes") == "Title set: My notes"
    assert state.store.get_conversation(session.conversation_id).title == "My notes"
