# src/akara/cli/commands.py

from __future__ import annotations

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any

from ..core.chat import generate_title, resolve_options
from ..core.state import AppState
from ..tasks.task_api import get_active_task
from ..tasks.task_models import ToolOptions

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConsoleSession:
    """What the console is currently talking to."""

    conversation_id: str
    options: ToolOptions
    last_task_id: str | None = None
    last_user_message: str | None = None
    titled: bool = False

    @classmethod
    def new(cls, settings: Any) -> ConsoleSession:
        return cls(conversation_id=str(uuid.uuid4()), options=resolve_options(settings))


CommandResult = str | Awaitable[str]
CommandHandler = Callable[[AppState, ConsoleSession, list[str]], CommandResult]


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /search, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, session: ConsoleSession, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        result = handler(state, session, parts[1:])
        if inspect.isawaitable(result):
            result = await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _parse_switch(args: list[str]) -> bool | None:
    if not args:
        return None
    arg = args[0].lower()
    if arg in ("on", "1", "true", "yes"):
        return True
    if arg in ("off", "0", "false", "no"):
        return False
    return None


def cmd_help(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    return registry.build_help() + "\n  /attach [from] - re-attach to the running (or last) task\n  /exit - quit"


def cmd_status(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    active = get_active_task(state, session.conversation_id)
    model = getattr(state.engine, "model", "offline")
    return (
        "Status:\n"
        f"  Conversation: {session.conversation_id}\n"
        f"  Tools: {session.options.label}\n"
        f"  Engine model: {model}\n"
        f"  Active task: {active or '-'}\n"
        f"  Tasks in memory: {len(state.registry)}"
    )


def cmd_search(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    """
    /search       -> show status
    /search on    -> offer web_search to the engine
    /search off   -> stop offering it
    """
    on = _parse_switch(args)
    if on is None:
        return f"Search is {'ON' if session.options.search_enabled else 'OFF'}. Use /search on or /search off."
    session.options = replace(session.options, search_enabled=on)
    return f"Search {'enabled' if on else 'disabled'}."


def cmd_code(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    on = _parse_switch(args)
    if on is None:
        return f"Code execution is {'ON' if session.options.code_enabled else 'OFF'}. Use /code on or /code off."
    session.options = replace(session.options, code_enabled=on)
    return f"Code execution {'enabled' if on else 'disabled'}."


def cmd_new(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    session.conversation_id = str(uuid.uuid4())
    session.last_task_id = None
    session.last_user_message = None
    session.titled = False
    return f"New conversation: {session.conversation_id}"


def cmd_list(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    conversations = state.store.list_conversations()
    if not conversations:
        return "No stored conversations."
    lines = ["Conversations (most recent first):"]
    for conv in conversations[:20]:
        marker = "*" if conv.id == session.conversation_id else " "
        lines.append(f" {marker} {conv.id}  {conv.title}  ({conv.updated_at})")
    return "\n".join(lines)


def cmd_open(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    if not args:
        return "Usage: /open <conversation id or prefix>"
    prefix = args[0]
    matches = [c for c in state.store.list_conversations() if c.id.startswith(prefix)]
    if not matches:
        return f"No conversation matches {prefix!r}."
    if len(matches) > 1:
        return f"{len(matches)} conversations match {prefix!r}; use a longer prefix."

    conv = matches[0]
    session.conversation_id = conv.id
    logger.debug("Console switched to conversation %s", conv.id)
    session.last_task_id = get_active_task(state, conv.id)
    session.titled = True
    messages = state.store.get_messages(conv.id, last=6)
    lines = [f"Opened: {conv.title} ({conv.id})"]
    for m in messages:
        preview = m.content if len(m.content) <= 200 else m.content[:200] + "..."
        lines.append(f"  [{m.role}] {preview}")
    return "\n".join(lines)


def cmd_delete(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    target = args[0] if args else session.conversation_id
    if get_active_task(state, target) is not None:
        return "A task is still running for that conversation; try again when it finishes."
    state.store.delete_conversation(target)
    if target == session.conversation_id:
        cmd_new(state, session, [])
    return f"Deleted conversation {target}."


async def cmd_title(state: AppState, session: ConsoleSession, args: list[str]) -> str:
    """
    /title          -> regenerate the title from the last message
    /title <text>   -> set it explicitly
    """
    if state.store.get_conversation(session.conversation_id) is None:
        return "Nothing to title yet."
    if args:
        title = " ".join(args)
        state.store.update_title(session.conversation_id, title)
        session.titled = True
        return f"Title set: {title}"
    if not session.last_user_message:
        return "Send a message first, or use /title <text>."
    title = await generate_title(state, session.conversation_id, session.last_user_message)
    session.titled = True
    return f"Title: {title}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show conversation, tools and task status.")
registry.register("search", cmd_search, help_text="Toggle web search: /search on | /search off.")
registry.register("code", cmd_code, help_text="Toggle Python execution: /code on | /code off.")
registry.register("new", cmd_new, help_text="Start a new conversation.")
registry.register("list", cmd_list, help_text="List stored conversations.", aliases=["ls"])
registry.register("open", cmd_open, help_text="Switch to a stored conversation: /open <id>.")
registry.register("delete", cmd_delete, help_text="Delete a conversation (default: current).")
registry.register("title", cmd_title, help_text="Regenerate or set the title: /title [text].")
