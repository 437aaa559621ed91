# src/akara/tools/catalog.py

from __future__ import annotations

from typing import Final

from ..core.ports import ToolSpec
from ..tasks.task_models import ToolOptions

WEB_SEARCH: Final[str] = "web_search"
EXECUTE_PYTHON: Final[str] = "execute_python"

TOOL_SPECS: Final[dict[str, ToolSpec]] = {
    WEB_SEARCH: {
        "type": "function",
        "function": {
            "name": WEB_SEARCH,
            "description": "Search the internet for current information, news, or specific facts.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The search query (e.g., 'latest AI news').",
                    },
                },
                "required": ["query"],
            },
        },
    },
    EXECUTE_PYTHON: {
        "type": "function",
        "function": {
            "name": EXECUTE_PYTHON,
            "description": (
                "Execute Python code to perform calculations, data analysis, or verify "
                "programming logic. Use this to run code and see the output."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "code": {
                        "type": "string",
                        "description": "The valid Python code to execute.",
                    },
                },
                "required": ["code"],
            },
        },
    },
}


def active_tool_names(options: ToolOptions) -> list[str]:
    names: list[str] = []
    if options.search_enabled:
        names.append(WEB_SEARCH)
    if options.code_enabled:
        names.append(EXECUTE_PYTHON)
    return names


def active_tools(options: ToolOptions) -> list[ToolSpec]:
    """Tool schemas offered to the engine for these options (empty when all tools are off)."""
    return [TOOL_SPECS[name] for name in active_tool_names(options)]
