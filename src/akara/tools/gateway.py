# src/akara/tools/gateway.py

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .catalog import EXECUTE_PYTHON, WEB_SEARCH
from .python_exec import PythonExecutor
from .websearch import WebSearch

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[str]]


class UnknownToolError(LookupError):
    """The engine asked for a tool this gateway cannot dispatch."""


class ToolArgumentError(ValueError):
    pass


def _parse_arguments(arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    # Ollama's native API sends a dict, OpenAI-compatible APIs a JSON string.
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, dict):
        return arguments
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise ToolArgumentError(f"arguments are not valid JSON ({e.msg})") from e
    if not isinstance(parsed, dict):
        raise ToolArgumentError("arguments must be a JSON object")
    return parsed


def _require_str(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolArgumentError(f"missing required string argument '{key}'")
    return value


class LocalToolGateway:
    """
    Dispatch tool calls to in-process handlers.

    Contract:
    - unknown tool name -> UnknownToolError (the caller treats it as fatal)
    - anything that goes wrong inside a known tool -> returned as "Error executing <tool>: ..."
    """

    def __init__(self, handlers: dict[str, ToolHandler] | None = None) -> None:
        self._handlers: dict[str, ToolHandler] = dict(handlers or {})
        self._search: WebSearch | None = None

    @classmethod
    def with_defaults(cls, search: WebSearch, python: PythonExecutor) -> LocalToolGateway:
        async def web_search(args: dict[str, Any]) -> str:
            return await search.search_as_context(_require_str(args, "query"))

        async def execute_python(args: dict[str, Any]) -> str:
            return await python.run(_require_str(args, "code"))

        gateway = cls({WEB_SEARCH: web_search, EXECUTE_PYTHON: execute_python})
        gateway._search = search
        return gateway

    async def aclose(self) -> None:
        if self._search is not None:
            await self._search.aclose()

    def register(self, name: str, handler: ToolHandler) -> None:
        self._handlers[name] = handler

    @property
    def names(self) -> list[str]:
        return sorted(self._handlers)

    async def invoke(self, name: str, arguments: str | dict[str, Any] | None) -> str:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownToolError(f"Unknown tool '{name}'")

        try:
            args = _parse_arguments(arguments)
            return await handler(args)
        except ToolArgumentError as e:
            logger.warning("Tool %s rejected arguments: %s", name, e)
            return f"Error executing {name}: {e}"
        except Exception as e:
            logger.exception("Tool execution error (%s)", name)
            return f"Error executing {name}: {e}"
