# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from akara.core.state import AppState
from akara.storage.conversation_store import ConversationStore
from akara.tasks.broker import StreamBroker
from akara.tasks.registry import TaskRegistry
from akara.tasks.runner import TaskRunner

from .fakes import FakeEngineClient, FakeMessageSink, FakeToolGateway


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="akara-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        conversations_db_path=tmp_path / "chatbot.sqlite3",
        # Task broker
        task_max_iterations=5,
        task_tool_rounds=1,
        task_retention_seconds=300.0,
        heartbeat_interval_seconds=30.0,
        history_window=10,
        # Tools
        search_enabled=False,
        code_enabled=False,
    )


@dataclass
class Harness:
    """Registry + broker + runner wired to fakes, for driving tasks directly."""

    registry: TaskRegistry
    broker: StreamBroker
    engine: FakeEngineClient
    tools: FakeToolGateway
    sink: FakeMessageSink
    runner: TaskRunner


@pytest.fixture()
def make_harness() -> Callable[..., Harness]:
    def _make(
        *,
        engine: FakeEngineClient | None = None,
        tools: Any = None,
        sink: FakeMessageSink | None = None,
        **runner_kwargs: Any,
    ) -> Harness:
        registry = TaskRegistry()
        broker = StreamBroker(registry)
        engine = engine or FakeEngineClient()
        tools = tools if tools is not None else FakeToolGateway()
        sink = sink or FakeMessageSink()
        runner = TaskRunner(
            registry=registry,
            broker=broker,
            engine=engine,
            tools=tools,
            sink=sink,
            **runner_kwargs,
        )
        return Harness(registry, broker, engine, tools, sink, runner)

    return _make


@pytest.fixture()
def store(settings: SimpleNamespace) -> ConversationStore:
    return ConversationStore(settings.conversations_db_path)


@pytest.fixture()
def engine() -> FakeEngineClient:
    return FakeEngineClient()


@pytest.fixture()
def state(settings: SimpleNamespace, store: ConversationStore, engine: FakeEngineClient) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: We keep the real SQLite ConversationStore here because the runner
    persists into it and that is part of what we want to test.
    """
    registry = TaskRegistry()
    broker = StreamBroker(registry)
    tools = FakeToolGateway()
    runner = TaskRunner(
        registry=registry,
        broker=broker,
        engine=engine,
        tools=tools,
        sink=store,
        max_iterations=settings.task_max_iterations,
        tool_rounds=settings.task_tool_rounds,
        heartbeat_interval=settings.heartbeat_interval_seconds,
        retention_seconds=settings.task_retention_seconds,
    )
    return AppState(
        settings=settings,
        engine=engine,
        tools=tools,
        store=store,
        registry=registry,
        broker=broker,
        runner=runner,
    )
