# src/akara/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the engine, tools, conversation store and the task broker (registry/broker/runner) into AppState.
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import get_settings
from ..core.ports import EngineClient
from ..core.state import AppState
from ..llm.client import OpenAIEngineClient
from ..llm.offline import OfflineEngineClient
from ..storage.conversation_store import ConversationStore
from ..tasks.broker import StreamBroker
from ..tasks.registry import TaskRegistry
from ..tasks.runner import TaskRunner
from ..tools.gateway import LocalToolGateway
from ..tools.python_exec import PythonExecutor
from ..tools.websearch import WebSearch

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Any) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.conversations_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_engine(settings: Any) -> EngineClient:
    if getattr(settings, "offline", False):
        logger.info("Offline mode: using the deterministic offline engine.")
        return OfflineEngineClient()
    try:
        engine = OpenAIEngineClient(settings)
    except RuntimeError as e:
        # Fallback for demos / local runs without a configured engine.
        logger.warning("Engine not configured (%s); using the offline engine.", e)
        return OfflineEngineClient()
    logger.info("Using engine model %s at %s", engine.model, settings.engine_base_url)
    return engine


def create_initial_state(*, settings: Any = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    engine = build_engine(settings)
    tools = LocalToolGateway.with_defaults(
        WebSearch(
            timeout_seconds=settings.search_timeout_seconds,
            max_results=settings.search_max_results,
        ),
        PythonExecutor(
            executable=settings.python_executable,
            timeout_seconds=settings.python_timeout_seconds,
        ),
    )
    store = ConversationStore(settings.conversations_db_path)

    registry = TaskRegistry()
    broker = StreamBroker(registry)
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


async def shutdown_state(state: AppState, *, timeout: float = 10.0) -> None:
    """Let running tasks finish (bounded), then release clients. Logs instead of raising."""
    try:
        await state.runner.shutdown(timeout=timeout)
    except Exception:
        logger.exception("Runner shutdown failed.")

    state.registry.close()

    for name, resource in (("tools", state.tools), ("engine", state.engine)):
        aclose = getattr(resource, "aclose", None)
        if aclose is None:
            continue
        try:
            await aclose()
        except Exception:
            logger.debug("%s close failed.", name, exc_info=True)

    state.store.close()
