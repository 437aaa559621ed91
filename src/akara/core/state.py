# src/akara/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..storage.conversation_store import ConversationStore
from ..tasks.broker import StreamBroker
from ..tasks.registry import TaskRegistry
from ..tasks.runner import TaskRunner
from .ports import EngineClient, ToolGateway


@dataclass
class AppState:
    """Everything a front end needs, wired once in the composition root."""

    settings: Any
    engine: EngineClient
    tools: ToolGateway
    store: ConversationStore
    registry: TaskRegistry
    broker: StreamBroker
    runner: TaskRunner
