# src/akara/tasks/runner.py

"""
Task runner: drives one background generation task to a terminal state.

Control loop (per iteration, bounded by max_iterations):
- no tools enabled                 -> stream the answer, done
- tools enabled, tool round        -> non-streaming call offering the tools
    * tool calls requested         -> announce + run each tool in order, feed results back, next iteration
    * plain answer                 -> one fragment, done
- tools enabled, after tool rounds -> stream the answer without tools, done

Streaming is always the last step of a task. Running out of iterations is not an
error: the task completes with whatever text it has.

The runner is the only writer of its task's status and fragments. Every fragment
and the terminal event go out through the stream broker.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Sequence
from typing import Any

from ..core.ports import ChatMessage, EngineClient, EngineReply, MessageSink, ToolGateway
from ..tools.catalog import active_tools
from .broker import StreamBroker
from .events import DoneEvent, ErrorEvent
from .registry import TaskRegistry
from .task_models import FragmentKind, Task

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 5
DEFAULT_HEARTBEAT_SECONDS = 30.0
DEFAULT_RETENTION_SECONDS = 300.0


def tool_notice(name: str) -> str:
    return f"\n\n*> Executing {name}...*\n\n"


class TaskRunner:
    def __init__(
        self,
        *,
        registry: TaskRegistry,
        broker: StreamBroker,
        engine: EngineClient,
        tools: ToolGateway,
        sink: MessageSink,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tool_rounds: int = 1,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_SECONDS,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
    ) -> None:
        self._registry = registry
        self._broker = broker
        self._engine = engine
        self._tools = tools
        self._sink = sink
        self._max_iterations = max(1, int(max_iterations))
        self._tool_rounds = max(1, int(tool_rounds))
        self._heartbeat_interval = float(heartbeat_interval)
        self._retention = float(retention_seconds)
        # Strong references: the event loop only keeps weak ones to running tasks.
        self._running: dict[str, asyncio.Task[None]] = {}

    @property
    def running_count(self) -> int:
        return len(self._running)

    def start(self, task: Task, messages: Sequence[ChatMessage]) -> asyncio.Task[None]:
        """
        Schedule the task on the running event loop and return immediately.

        The asyncio task is supervised: if anything escapes run() (including
        cancellation at shutdown) the done-callback routes it into the same
        error transition the loop uses.
        """
        if task.id in self._running:
            raise RuntimeError(f"Task {task.id} is already running")

        runner = asyncio.create_task(self.run(task, list(messages)), name=f"akara-task-{task.id[:8]}")
        self._running[task.id] = runner
        runner.add_done_callback(lambda fut: self._on_done(task, fut))
        return runner

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Give running tasks `timeout` seconds to finish, then cancel the rest."""
        pending = list(self._running.values())
        if not pending:
            return
        logger.info("Waiting for %d running task(s)...", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for runner in still_running:
            runner.cancel()
        if still_running:
            await asyncio.wait(still_running)

    async def run(self, task: Task, messages: list[ChatMessage]) -> None:
        logger.info(
            "Task %s starting (search=%s, code=%s)",
            task.id[:8],
            task.options.search_enabled,
            task.options.code_enabled,
        )
        heartbeat = asyncio.create_task(self._heartbeat(task), name=f"akara-heartbeat-{task.id[:8]}")
        try:
            await self._drive(task, messages)
        except Exception as e:
            logger.exception("Task %s fatal error", task.id[:8])
            self._fail(task, e)
            return
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat

        await self._complete(task)

    # ---- control loop ----

    async def _drive(self, task: Task, messages: list[ChatMessage]) -> None:
        tools = active_tools(task.options)

        for iteration in range(1, self._max_iterations + 1):
            should_stream = not tools or iteration > self._tool_rounds
            logger.info(
                "Task %s iteration %d (%s)",
                task.id[:8],
                iteration,
                "stream" if should_stream else "tools",
            )

            if should_stream:
                await self._stream_answer(task, messages)
                return

            reply = await self._engine.complete(messages, tools=tools)
            if reply.wants_tools:
                await self._run_tools(task, messages, reply)
                continue

            logger.info("Task %s final response received (non-streamed)", task.id[:8])
            if reply.content:
                self._broker.append(task, reply.content)
            return
        else:
            logger.warning(
                "Task %s reached max iterations (%d) without a final answer",
                task.id[:8],
                self._max_iterations,
            )

    async def _stream_answer(self, task: Task, messages: list[ChatMessage]) -> None:
        count = 0
        async for piece in self._engine.stream(messages):
            if not piece:
                continue
            self._broker.append(task, piece)
            count += 1
        logger.info("Task %s streamed %d fragments", task.id[:8], count)

    async def _run_tools(self, task: Task, messages: list[ChatMessage], reply: EngineReply) -> None:
        logger.info("Task %s model requested %d tool(s)", task.id[:8], len(reply.tool_calls))
        messages.append(reply.to_message())

        for call in reply.tool_calls:
            logger.info("Task %s executing tool: %s", task.id[:8], call.name)
            self._broker.append(task, tool_notice(call.name), FragmentKind.NOTICE)

            result = await self._tools.invoke(call.name, call.arguments)
            messages.append({"role": "tool", "tool_call_id": call.id, "content": result})

    async def _heartbeat(self, task: Task) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            self._broker.heartbeat(task)

    # ---- terminal transitions ----

    async def _complete(self, task: Task) -> None:
        task.mark_completed()

        # Status is already terminal: `done` and removal must follow even if
        # the persistence await is cancelled.
        try:
            if task.full_text:
                await self._persist(task)
            else:
                logger.info("Task %s completed with no text", task.id[:8])
        finally:
            self._broker.finish(task, DoneEvent())
            self._registry.schedule_removal(task.id, self._retention)

    async def _persist(self, task: Task) -> None:
        try:
            await asyncio.to_thread(self._sink.add_message, task.conversation_id, "assistant", task.full_text)
        except Exception:
            logger.exception("Task %s failed to persist assistant message", task.id[:8])
            return
        duration = (task.completed_at or time.time()) - task.created_at
        logger.info(
            "Task %s completed in %.1fs (%d words)",
            task.id[:8],
            duration,
            len(task.full_text.split()),
        )

    def _fail(self, task: Task, err: BaseException | str) -> None:
        if task.status.is_terminal:
            return
        message = str(err) or err.__class__.__name__
        task.mark_error(message)
        self._broker.finish(task, ErrorEvent(message))
        self._registry.schedule_removal(task.id, self._retention)

    def _on_done(self, task: Task, fut: asyncio.Task[Any]) -> None:
        self._running.pop(task.id, None)
        if fut.cancelled():
            if not task.status.is_terminal:
                logger.warning("Task %s cancelled while running", task.id[:8])
                self._fail(task, "Task was cancelled")
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("Task %s runner crashed", task.id[:8], exc_info=exc)
            self._fail(task, exc)
