# src/akara/tasks/broker.py

"""
Stream broker: fans a task's fragments out to any number of subscribers.

A subscriber either tails the task live or replays from a fragment index and
then continues live. Replay and registration happen under the task lock, and
so does append + fan-out, so a subscriber sees every index >= from_index once,
in order, whatever the timing of subscribe() relative to the runner.

Pushes never block: each subscription owns an unbounded asyncio.Queue and the
broker only calls put_nowait(). A sink that has been closed by its consumer is
dropped on the next push.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable

from .events import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    HeartbeatEvent,
    StreamEvent,
    TerminalEvent,
    encode_sse,
)
from .registry import TaskRegistry
from .task_models import Fragment, FragmentKind, Task, TaskStatus

logger = logging.getLogger(__name__)

_CLOSED = object()


class SinkClosedError(RuntimeError):
    """Push attempted on a subscription that is already closed."""


class Subscription:
    """
    One subscriber's live channel: an async iterator of StreamEvents.

    Iteration ends after the channel is closed and everything queued before
    the close has been consumed. `cancel()` is the consumer-side disconnect.
    """

    def __init__(
        self,
        task_id: str,
        *,
        from_index: int = 0,
        on_cancel: Callable[[str, str], object] | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.task_id = task_id
        self.from_index = max(0, int(from_index))
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._on_cancel = on_cancel

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: StreamEvent) -> None:
        """Queue an event. Chunks below `from_index` are dropped."""
        if self._closed:
            raise SinkClosedError(f"subscription {self.id} is closed")
        if isinstance(event, ChunkEvent) and event.index < self.from_index:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def cancel(self) -> None:
        """Detach from the broker and close. Safe to call more than once."""
        if self._on_cancel is not None:
            self._on_cancel(self.task_id, self.id)
        self.close()

    def drain_nowait(self) -> list[StreamEvent]:
        """Everything queued right now, without waiting."""
        out: list[StreamEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return out
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                return out
            out.append(item)  # type: ignore[arg-type]

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> StreamEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker so later reads stop too.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    async def sse(self) -> AsyncIterator[str]:
        """Events encoded as server-sent-event frames, for a text push transport."""
        try:
            async for event in self:
                yield encode_sse(event)
        finally:
            self.cancel()


class StreamBroker:
    def __init__(self, registry: TaskRegistry) -> None:
        self._registry = registry

    def subscribe(self, task_id: str, from_index: int = 0) -> Subscription | None:
        """
        Attach to a task, replaying fragments with index >= from_index first.

        Returns None if the task is unknown. For a task that already finished,
        the returned subscription holds the replay plus the terminal event and
        is closed; it is never registered as live.
        """
        task = self._registry.get(task_id)
        if task is None:
            logger.warning("Task %s not found for streaming", task_id[:8])
            return None

        sub = Subscription(task_id, from_index=from_index, on_cancel=self.unsubscribe)
        with task.lock:
            replay = task.fragments_from(from_index)
            for fragment in replay:
                sub.push(ChunkEvent.from_fragment(fragment))

            if task.status is TaskStatus.COMPLETED:
                sub.push(DoneEvent())
                sub.close()
            elif task.status is TaskStatus.ERROR:
                sub.push(ErrorEvent(task.error or "Unknown error"))
                sub.close()
            else:
                task.subscribers[sub.id] = sub

        logger.info(
            "Task %s new subscriber %s (from fragment %d, replayed %d, %s)",
            task_id[:8],
            sub.id[:8],
            from_index,
            len(replay),
            task.status,
        )
        return sub

    def unsubscribe(self, task_id: str, subscription_id: str) -> bool:
        task = self._registry.get(task_id)
        if task is None:
            return False
        with task.lock:
            removed = task.subscribers.pop(subscription_id, None) is not None
        if removed:
            logger.info("Task %s subscriber %s disconnected", task_id[:8], subscription_id[:8])
        return removed

    def subscriber_count(self, task_id: str) -> int:
        task = self._registry.get(task_id)
        if task is None:
            return 0
        with task.lock:
            return len(task.subscribers)

    # ---- runner-facing API ----

    def append(self, task: Task, text: str, kind: FragmentKind = FragmentKind.TEXT) -> Fragment:
        """Store the next fragment and push it to every live subscriber."""
        with task.lock:
            fragment = task.append_fragment(text, kind)
            self._fan_out(task, ChunkEvent.from_fragment(fragment))
        return fragment

    def heartbeat(self, task: Task) -> None:
        self._fan_out(task, HeartbeatEvent())

    def finish(self, task: Task, event: TerminalEvent) -> None:
        """Deliver the terminal event, then close and drop every live subscriber."""
        with task.lock:
            self._fan_out(task, event)
            subscribers = list(task.subscribers.values())
            task.subscribers.clear()
        for sub in subscribers:
            sub.close()

    def _fan_out(self, task: Task, event: StreamEvent) -> None:
        with task.lock:
            for sub_id, sub in list(task.subscribers.items()):
                try:
                    sub.push(event)
                except SinkClosedError:
                    task.subscribers.pop(sub_id, None)
                    logger.debug("Task %s dropped closed subscriber %s", task.id[:8], sub_id[:8])
