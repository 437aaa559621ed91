# src/akara/core/chat.py

"""
Chat orchestration on top of the task broker.

Transport-agnostic:
- front ends hand in a conversation id + the user's text,
- this module records the user turn, builds the prompt (system prompt + recent history),
  and starts a background task,
- front ends subscribe to the task and decide how to display the stream.

Key invariants:
- at most one running task per conversation (a second request is refused, not queued),
- the assistant turn is stored by the task runner when the task completes, never here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..llm.client import EngineError
from ..storage.conversation_store import DEFAULT_TITLE
from ..tasks.task_api import get_active_task, start_task
from ..tasks.task_models import ToolOptions
from .persona import TITLE_PROMPT, get_system_prompt
from .ports import ChatMessage
from .state import AppState

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW = 10
MAX_TITLE_WORDS = 6


class ConversationBusyError(RuntimeError):
    """A task is still running for this conversation."""

    def __init__(self, conversation_id: str, task_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} already has a running task {task_id}")
        self.conversation_id = conversation_id
        self.task_id = task_id


def resolve_options(settings: Any, *, search: bool | None = None, code: bool | None = None) -> ToolOptions:
    """Per-request flags win; unset flags fall back to the configured defaults."""
    return ToolOptions(
        search_enabled=bool(getattr(settings, "search_enabled", True)) if search is None else search,
        code_enabled=bool(getattr(settings, "code_enabled", False)) if code is None else code,
    )


def build_messages(state: AppState, conversation_id: str, options: ToolOptions) -> list[ChatMessage]:
    """System prompt followed by the most recent stored turns (user turn included)."""
    window = int(getattr(state.settings, "history_window", DEFAULT_HISTORY_WINDOW))
    history = state.store.get_messages(conversation_id, last=window)
    return [
        {"role": "system", "content": get_system_prompt(options)},
        *({"role": m.role, "content": m.content} for m in history),
    ]


def _record_user_turn(state: AppState, conversation_id: str, message: str, options: ToolOptions) -> list[ChatMessage]:
    if state.store.get_conversation(conversation_id) is None:
        state.store.create_conversation(conversation_id)
    state.store.add_message(conversation_id, "user", message)
    state.store.touch_conversation(conversation_id)
    return build_messages(state, conversation_id, options)


async def start_chat(
    state: AppState,
    conversation_id: str,
    message: str,
    options: ToolOptions | None = None,
) -> str:
    """Record the user's message and start a background task answering it. Returns the task id."""
    text = (message or "").strip()
    if not text:
        raise ValueError("message is required")

    active = get_active_task(state, conversation_id)
    if active is not None:
        raise ConversationBusyError(conversation_id, active)

    options = options or resolve_options(state.settings)
    logger.info(
        "Chat request [%s]: %s (%s)",
        conversation_id[:8],
        text[:80],
        options.label,
    )

    messages = await asyncio.to_thread(_record_user_turn, state, conversation_id, text, options)

    # Another request may have started a task while the store call was in flight.
    active = get_active_task(state, conversation_id)
    if active is not None:
        raise ConversationBusyError(conversation_id, active)

    task_id = start_task(state, conversation_id, messages, options)
    logger.info("Task %s assigned to conversation %s", task_id[:8], conversation_id[:8])
    return task_id


def _clean_title(raw: str) -> str:
    title = " ".join(raw.strip().strip("\"'").split())
    title = title.rstrip(".!?:;,")
    words = title.split(" ")
    if len(words) > MAX_TITLE_WORDS:
        title = " ".join(words[:MAX_TITLE_WORDS])
    return title or DEFAULT_TITLE


async def generate_title(state: AppState, conversation_id: str, message: str) -> str:
    """Ask the engine for a short conversation title and store it. Falls back to "New Chat"."""
    logger.info("Generating auto-title for [%s]", conversation_id[:8])
    try:
        reply = await state.engine.complete(
            [
                {"role": "system", "content": TITLE_PROMPT},
                {"role": "user", "content": message},
            ]
        )
    except EngineError as e:
        logger.error("Auto-title error: %s", e)
        return DEFAULT_TITLE

    title = _clean_title(reply.content)
    await asyncio.to_thread(state.store.update_title, conversation_id, title)
    logger.info('Auto-title set: "%s" for [%s]', title, conversation_id[:8])
    return title
