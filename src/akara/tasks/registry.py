# src/akara/tasks/registry.py

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections.abc import Callable, MutableMapping

from .task_models import Task, TaskSnapshot, TaskStatus, ToolOptions

logger = logging.getLogger(__name__)


def _new_task_id() -> str:
    return uuid.uuid4().hex


class TaskRegistry:
    """
    Authoritative mapping task_id -> Task for this process.

    Created once in the composition root and handed to the runner and the broker.
    The backing mapping is injectable; every access goes through a lock so the
    registry can be shared with worker threads.

    Lookups on unknown ids return None and never raise.
    """

    def __init__(
        self,
        store: MutableMapping[str, Task] | None = None,
        *,
        id_factory: Callable[[], str] = _new_task_id,
    ) -> None:
        self._tasks: MutableMapping[str, Task] = {} if store is None else store
        self._id_factory = id_factory
        self._lock = threading.Lock()
        self._removals: dict[str, asyncio.TimerHandle] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks

    def create(self, conversation_id: str, options: ToolOptions | None = None) -> str:
        """Insert a new running task. Does not start it."""
        with self._lock:
            task_id = self._id_factory()
            while task_id in self._tasks:
                task_id = self._id_factory()
            self._tasks[task_id] = Task(
                id=task_id,
                conversation_id=conversation_id,
                options=options or ToolOptions(),
            )
        logger.info(
            "Task %s created for conversation %s (%s)",
            task_id[:8],
            conversation_id[:8],
            (options or ToolOptions()).label,
        )
        return task_id

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            return self._tasks.get(task_id)

    def snapshot(self, task_id: str) -> TaskSnapshot | None:
        task = self.get(task_id)
        return task.snapshot() if task is not None else None

    def find_active_by_conversation(self, conversation_id: str) -> str | None:
        with self._lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            if task.conversation_id == conversation_id and task.status is TaskStatus.RUNNING:
                return task.id
        return None

    def find_latest_by_conversation(self, conversation_id: str) -> str | None:
        """Most recently created task (any status) still held for the conversation."""
        with self._lock:
            tasks = [t for t in self._tasks.values() if t.conversation_id == conversation_id]
        if not tasks:
            return None
        return max(tasks, key=lambda t: t.created_at).id

    def remove(self, task_id: str) -> bool:
        with self._lock:
            handle = self._removals.pop(task_id, None)
            removed = self._tasks.pop(task_id, None) is not None
        if handle is not None:
            handle.cancel()
        if removed:
            logger.info("Task %s cleaned up from memory", task_id[:8])
        return removed

    def schedule_removal(self, task_id: str, after: float) -> None:
        """
        Remove the task `after` seconds from now.

        Idempotent: a second call for the same task keeps the first timer,
        and a timer for a task that is already gone does nothing.
        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if task_id not in self._tasks or task_id in self._removals:
                return
            self._removals[task_id] = loop.call_later(max(0.0, after), self._expire, task_id)
        logger.debug("Task %s removal scheduled in %.1fs", task_id[:8], after)

    def _expire(self, task_id: str) -> None:
        with self._lock:
            self._removals.pop(task_id, None)
        self.remove(task_id)

    def close(self) -> None:
        """Cancel pending removals (shutdown)."""
        with self._lock:
            handles = list(self._removals.values())
            self._removals.clear()
        for handle in handles:
            handle.cancel()
