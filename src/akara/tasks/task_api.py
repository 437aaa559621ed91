# src/akara/tasks/task_api.py

"""Task-control surface for front ends (HTTP layer, console)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..core.ports import ChatMessage
from ..core.state import AppState
from .broker import Subscription
from .task_models import TaskSnapshot, TaskStatus, ToolOptions

logger = logging.getLogger(__name__)


def start_task(
    state: AppState,
    conversation_id: str,
    messages: Sequence[ChatMessage],
    options: ToolOptions | None = None,
) -> str:
    """
    Create a task and hand it to the runner. Returns the task id immediately.

    Must be called from the event loop thread; the task keeps running whether
    or not anyone subscribes.
    """
    task_id = state.registry.create(conversation_id, options)
    task = state.registry.get(task_id)
    if task is None:
        raise RuntimeError(f"Task {task_id} vanished right after creation")
    state.runner.start(task, messages)
    return task_id


def subscribe(state: AppState, task_id: str, from_index: int = 0) -> Subscription | None:
    return state.broker.subscribe(task_id, from_index)


def status_payload(snapshot: TaskSnapshot) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": snapshot.id,
        "conversationId": snapshot.conversation_id,
        "status": snapshot.status.value,
        "fragmentCount": snapshot.fragment_count,
    }
    if snapshot.status is TaskStatus.COMPLETED:
        payload["fullText"] = snapshot.full_text
    if snapshot.error is not None:
        payload["error"] = snapshot.error
    return payload


def get_status(state: AppState, task_id: str) -> dict[str, Any] | None:
    snapshot = state.registry.snapshot(task_id)
    return status_payload(snapshot) if snapshot is not None else None


def get_active_task(state: AppState, conversation_id: str) -> str | None:
    return state.registry.find_active_by_conversation(conversation_id)
