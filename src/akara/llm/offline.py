# src/akara/llm/offline.py

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence

from ..core.ports import ChatMessage, EngineReply, ToolSpec


class OfflineEngineClient:
    """
    Offline deterministic engine used for demos when no engine is reachable or configured.

    Behavior:
    - Never requests tools.
    - Title prompts -> "Offline chat"
    - Normal chat -> a friendly offline response, streamed word by word
    """

    def __init__(self, *, delay_seconds: float = 0.0) -> None:
        self._delay = delay_seconds

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        tools: Sequence[ToolSpec] | None = None,
    ) -> EngineReply:
        return EngineReply(content=self._reply(messages))

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        words = self._reply(messages).split(" ")
        for i, word in enumerate(words):
            if self._delay:
                await asyncio.sleep(self._delay)
            yield word if i == 0 else " " + word

    @staticmethod
    def _reply(messages: list[ChatMessage]) -> str:
        system = next((str(m.get("content", "")) for m in messages if m.get("role") == "system"), "")
        if "short title" in system.lower():
            return "Offline chat"

        user_text = ""
        for m in reversed(messages):
            if m.get("role") == "user":
                user_text = str(m.get("content", ""))
                break

        return (
            "Offline demo mode: no engine is configured. "
            "Set AKARA_ENGINE_BASE_URL and AKARA_ENGINE_MODEL to enable real responses. "
            f"You said: {user_text}"
        )
