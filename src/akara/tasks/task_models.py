# src/akara/tasks/task_models.py

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """Background generation task lifecycle: running -> completed | error."""

    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.RUNNING


class FragmentKind(StrEnum):
    TEXT = "text"
    # Progress notice ("Executing web_search..."): replayed like text, kept out of full_text.
    NOTICE = "notice"


class TaskStateError(RuntimeError):
    """Raised on a mutation that the task lifecycle does not allow."""


@dataclass(slots=True, frozen=True)
class Fragment:
    index: int
    text: str
    kind: FragmentKind = FragmentKind.TEXT


@dataclass(slots=True, frozen=True)
class ToolOptions:
    """
    Per-task tool configuration, resolved once when the task is created.

    Drives both the tool list offered to the engine and the system prompt.
    """

    search_enabled: bool = True
    code_enabled: bool = False

    @property
    def any_enabled(self) -> bool:
        return self.search_enabled or self.code_enabled

    @property
    def label(self) -> str:
        modes = [name for name, on in (("Search", self.search_enabled), ("Code", self.code_enabled)) if on]
        return "+".join(modes) if modes else "Chat"


@dataclass(slots=True, frozen=True)
class TaskSnapshot:
    """Read-only view of a task (never includes subscribers)."""

    id: str
    conversation_id: str
    options: ToolOptions
    status: TaskStatus
    fragments: tuple[Fragment, ...]
    full_text: str
    error: str | None
    created_at: float
    completed_at: float | None

    @property
    def fragment_count(self) -> int:
        return len(self.fragments)


@dataclass(slots=True)
class Task:
    """
    One background generation job tied to a conversation turn.

    Only the task's own runner mutates status/fragments/full_text/error.
    `subscribers` maps subscription id -> live sink and is owned by the stream broker;
    `lock` guards fragments + subscribers together so replay-then-register is atomic.
    """

    id: str
    conversation_id: str
    options: ToolOptions = field(default_factory=ToolOptions)
    status: TaskStatus = TaskStatus.RUNNING
    fragments: list[Fragment] = field(default_factory=list)
    full_text: str = ""
    error: str | None = None
    created_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    subscribers: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def append_fragment(self, text: str, kind: FragmentKind = FragmentKind.TEXT) -> Fragment:
        with self.lock:
            if self.status.is_terminal:
                raise TaskStateError(f"Task {self.id} is {self.status}; cannot append fragments")
            fragment = Fragment(index=len(self.fragments), text=text, kind=kind)
            self.fragments.append(fragment)
            if kind is FragmentKind.TEXT:
                self.full_text += text
        return fragment

    def fragments_from(self, from_index: int) -> list[Fragment]:
        start = max(0, int(from_index))
        with self.lock:
            return self.fragments[start:]

    def mark_completed(self, now: float | None = None) -> None:
        self._finish(TaskStatus.COMPLETED, now)

    def mark_error(self, message: str, now: float | None = None) -> None:
        self._finish(TaskStatus.ERROR, now, error=message)

    def _finish(self, status: TaskStatus, now: float | None, *, error: str | None = None) -> None:
        with self.lock:
            if self.status.is_terminal:
                raise TaskStateError(f"Task {self.id} already {self.status}")
            self.status = status
            self.error = error
            self.completed_at = time.time() if now is None else now

    def snapshot(self) -> TaskSnapshot:
        with self.lock:
            return TaskSnapshot(
                id=self.id,
                conversation_id=self.conversation_id,
                options=self.options,
                status=self.status,
                fragments=tuple(self.fragments),
                full_text=self.full_text,
                error=self.error,
                created_at=self.created_at,
                completed_at=self.completed_at,
            )
