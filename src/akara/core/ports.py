# src/akara/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The task broker depends on Protocols instead of concrete implementations.
This keeps the engine, the tools and the conversation store swappable and makes testing easier.
"""

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

ChatMessage = dict[str, Any]
# OpenAI-style chat messages: {"role": "...", "content": "..."}, plus
# "tool_calls" on assistant tool requests and "tool_call_id" on tool results.

ToolSpec = dict[str, Any]
# OpenAI-style function tool schema: {"type": "function", "function": {...}}.


@dataclass(slots=True, frozen=True)
class ToolCall:
    """One tool invocation requested by the engine. `arguments` is a JSON object string."""

    id: str
    name: str
    arguments: str = "{}"

    def to_message_part(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(slots=True, frozen=True)
class EngineReply:
    """Result of a non-streaming engine call: final text, tool requests, or both."""

    content: str = ""
    tool_calls: tuple[ToolCall, ...] = field(default_factory=tuple)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)

    def to_message(self) -> ChatMessage:
        msg: ChatMessage = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            msg["tool_calls"] = [c.to_message_part() for c in self.tool_calls]
        return msg


class EngineClient(Protocol):
    """Chat completion engine (OpenAI/Ollama-compatible)."""

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        tools: Sequence[ToolSpec] | None = None,
    ) -> EngineReply: ...

    def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]: ...


class ToolGateway(Protocol):
    """
    Uniform tool dispatch.

    Ordinary tool failures come back as text; only an unknown tool name raises.
    """

    async def invoke(self, name: str, arguments: str) -> str: ...


class MessageSink(Protocol):
    """Durable conversation storage: where finished assistant messages are appended."""

    def add_message(self, conversation_id: str, role: str, content: str) -> Any: ...
