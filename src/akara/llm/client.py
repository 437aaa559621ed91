# src/akara/llm/client.py

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..core.ports import ChatMessage, EngineReply, ToolCall, ToolSpec

logger = logging.getLogger(__name__)


class EngineError(RuntimeError):
    """Engine call failed (unreachable, non-success status, unusable response)."""


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError)):
        return True
    return exc.__class__.__name__ in {"Timeout", "ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _status_body(exc: openai.APIStatusError) -> str:
    try:
        text = exc.response.text.strip()
    except Exception:
        text = ""
    return text or str(exc.message)


def to_engine_error(exc: Exception) -> EngineError:
    """Map SDK/transport exceptions to one EngineError with a readable message."""
    if isinstance(exc, EngineError):
        return exc
    if _is_auth_error(exc):
        return EngineError("Engine authentication failed. Check AKARA_ENGINE_API_KEY.")
    if isinstance(exc, openai.APIStatusError):
        if _is_rate_limit_error(exc):
            return EngineError(f"Engine is rate-limited ({exc.status_code}). Try again later.")
        return EngineError(f"Engine error ({exc.status_code}): {_status_body(exc)}")
    if _is_connection_error(exc):
        return EngineError(f"Engine unreachable: {exc}")
    return EngineError(f"Engine error: {exc}")


def friendly_engine_error_message(err: Exception) -> str:
    msg = str(err).strip() or "Engine error."
    if "Engine base URL is not set" in msg:
        return "Engine is not configured (missing base URL). Set AKARA_ENGINE_BASE_URL in .env."
    if "Engine model is not set" in msg:
        return "Engine is not configured (no model). Set AKARA_ENGINE_MODEL in .env."
    if "Engine unreachable" in msg:
        return f"{msg}\nIs the engine running at the configured AKARA_ENGINE_BASE_URL?"
    return msg


def _make_timeout_obj(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def _delta_content(chunk: Any) -> str | None:
    """Text carried by one streamed chunk; None for chunks without usable content."""
    try:
        delta = chunk.choices[0].delta
    except (AttributeError, IndexError, TypeError):
        return None
    content = getattr(delta, "content", None)
    return content if isinstance(content, str) else None


class OpenAIEngineClient:
    """
    Chat engine over an OpenAI-compatible API (Ollama's /v1 endpoint by default).

    - Retries are disabled: a failed call fails the task, and the caller decides about retrying.
    - Timeouts come from settings (connect / read).
    """

    def __init__(self, settings: Any, *, http_client: httpx.AsyncClient | None = None) -> None:
        base_url = str(getattr(settings, "engine_base_url", "") or "").strip()
        model = str(getattr(settings, "engine_model", "") or "").strip()
        api_key = str(getattr(settings, "engine_api_key", "") or "").strip() or "ollama"

        if not base_url:
            raise RuntimeError("Engine base URL is not set. Set AKARA_ENGINE_BASE_URL in your .env.")
        if not model:
            raise RuntimeError("Engine model is not set. Set AKARA_ENGINE_MODEL in your .env.")

        connect_s = float(getattr(settings, "engine_connect_timeout_seconds", 5.0))
        read_s = float(getattr(settings, "engine_read_timeout_seconds", 120.0))

        self.model = model
        self._client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=_make_timeout_obj(connect_s, read_s),
            max_retries=0,
            default_headers=dict(getattr(settings, "extra_headers", {}) or {}) or None,
            http_client=http_client,
        )

    async def aclose(self) -> None:
        await self._client.close()

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        tools: Sequence[ToolSpec] | None = None,
    ) -> EngineReply:
        extra: dict[str, Any] = {}
        if tools:
            extra["tools"] = list(tools)

        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                stream=False,
                **extra,
            )
        except openai.OpenAIError as e:
            raise to_engine_error(e) from e

        try:
            message = response.choices[0].message
        except (AttributeError, IndexError, TypeError) as e:
            raise EngineError("Engine returned a malformed response (no choices).") from e

        calls: list[ToolCall] = []
        for i, call in enumerate(message.tool_calls or []):
            fn = getattr(call, "function", None)
            name = getattr(fn, "name", None)
            if not name:
                raise EngineError("Engine returned a tool call without a function name.")
            calls.append(
                ToolCall(
                    id=getattr(call, "id", None) or f"call_{i}",
                    name=name,
                    arguments=getattr(fn, "arguments", None) or "{}",
                )
            )

        logger.debug(
            "Engine: completion model=%s tool_calls=%d (%.2fs)",
            self.model,
            len(calls),
            time.monotonic() - t0,
        )
        return EngineReply(content=message.content or "", tool_calls=tuple(calls))

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """
        Yield text fragments as the engine produces them.

        Chunks without content (role headers, finish markers, malformed records) are skipped.
        """
        t0 = time.monotonic()
        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                stream=True,
            )
        except openai.OpenAIError as e:
            raise to_engine_error(e) from e

        used_any = False
        try:
            async for chunk in stream:
                content = _delta_content(chunk)
                if content is None:
                    logger.debug("Engine: skipped stream chunk without content")
                    continue
                if not content:
                    continue
                if not used_any:
                    logger.info("Engine: first token from model=%s (%.2fs)", self.model, time.monotonic() - t0)
                    used_any = True
                yield content
        except (openai.OpenAIError, httpx.HTTPError) as e:
            raise to_engine_error(e) from e
        finally:
            await stream.close()
