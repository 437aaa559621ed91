# src/akara/core/persona.py

from __future__ import annotations

from datetime import date
from typing import Final

from ..tasks.task_models import ToolOptions
from ..tools.catalog import EXECUTE_PYTHON, WEB_SEARCH

BASE_PERSONA_PROMPT: Final[str] = """
You are Akara AI, a helpful and knowledgeable AI assistant.
""".strip()

TOOL_INSTRUCTIONS: Final[dict[str, str]] = {
    WEB_SEARCH: (
        f"'{WEB_SEARCH}': Get up-to-date information from the internet.\n"
        "   - Use for current events, news, or specific facts you don't know."
    ),
    EXECUTE_PYTHON: (
        f"'{EXECUTE_PYTHON}': Execute Python code to calculate math, analyze data, or VERIFY code logic.\n"
        '   - When asked to "write code", write the code and then RUN it with '
        f"'{EXECUTE_PYTHON}' to make sure it works.\n"
        "   - Report the output of the execution to the user.\n"
        f"   - If '{EXECUTE_PYTHON}' returns an error, say so and fix the code in the next turn."
    ),
}

RULES: Final[str] = """
Instructions:
1. If you use a tool, base your answer on the tool's output.
2. When sharing code, always specify the programming language in code blocks.
3. Respond in the same language the user uses.
4. Provide comprehensive and detailed answers.
5. Do not say "I used the tool". Just provide the answer or result directly.
""".strip()

TITLE_PROMPT: Final[str] = (
    "Generate a very short title (max 6 words) for this chat based on the user's message. "
    "Reply with ONLY the title, nothing else. No quotes, no punctuation at the end."
)


def get_system_prompt(options: ToolOptions, *, today: date | None = None) -> str:
    """System prompt for one task: persona, instructions for enabled tools only, current date."""
    enabled = [name for name, on in ((WEB_SEARCH, options.search_enabled), (EXECUTE_PYTHON, options.code_enabled)) if on]

    parts = [BASE_PERSONA_PROMPT]
    if enabled:
        lines = ["You have access to REAL-TIME tools:"]
        lines += [f"{i}. {TOOL_INSTRUCTIONS[name]}" for i, name in enumerate(enabled, start=1)]
        parts.append("\n".join(lines))
    parts.append(RULES)
    parts.append(f"Today's date is {(today or date.today()).isoformat()}.")
    return "\n\n".join(parts)
