# src/akara/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Components take settings (or plain values) by injection, so tests can pass a SimpleNamespace.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "AKARA"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    conversations_db_path: Path

    # ---- Engine (OpenAI-compatible, Ollama by default) ----
    engine_base_url: str
    engine_api_key: str
    engine_model: str
    engine_connect_timeout_seconds: float
    engine_read_timeout_seconds: float
    extra_headers: dict[str, str]
    offline: bool

    # ---- Task broker ----
    task_max_iterations: int
    task_tool_rounds: int
    task_retention_seconds: float
    heartbeat_interval_seconds: float
    history_window: int

    # ---- Tools ----
    search_enabled: bool
    code_enabled: bool
    search_timeout_seconds: float
    search_max_results: int
    python_executable: str
    python_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "akara").strip() or "akara"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/akara"))
        conversations_db_path = _env_path(_k("CONVERSATIONS_DB_PATH"), data_dir / "chatbot.sqlite3")

        engine_base_url = _env(_k("ENGINE_BASE_URL"), "http://localhost:11434/v1")
        # Ollama ignores the key, but the OpenAI SDK refuses an empty one.
        engine_api_key = _env(_k("ENGINE_API_KEY"), "ollama")
        engine_model = _env(_k("ENGINE_MODEL"), "llama3.1")

        # Read timeout bounds the whole engine call; keep it >= connect timeout.
        connect_timeout = max(0.5, _env_float(_k("ENGINE_CONNECT_TIMEOUT_SECONDS"), 5.0))
        read_timeout = max(connect_timeout, _env_float(_k("ENGINE_READ_TIMEOUT_SECONDS"), 120.0))

        extra_headers = {"X-Title": _env(_k("APP_TITLE"), app_name)}

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            conversations_db_path=conversations_db_path,
            engine_base_url=engine_base_url,
            engine_api_key=engine_api_key,
            engine_model=engine_model,
            engine_connect_timeout_seconds=connect_timeout,
            engine_read_timeout_seconds=read_timeout,
            extra_headers=extra_headers,
            offline=_env_bool(_k("OFFLINE"), False),
            task_max_iterations=max(1, _env_int(_k("TASK_MAX_ITERATIONS"), 5)),
            task_tool_rounds=max(1, _env_int(_k("TASK_TOOL_ROUNDS"), 1)),
            task_retention_seconds=max(0.0, _env_float(_k("TASK_RETENTION_SECONDS"), 300.0)),
            heartbeat_interval_seconds=max(0.1, _env_float(_k("HEARTBEAT_INTERVAL_SECONDS"), 30.0)),
            history_window=max(1, _env_int(_k("HISTORY_WINDOW"), 10)),
            search_enabled=_env_bool(_k("SEARCH_ENABLED"), True),
            code_enabled=_env_bool(_k("CODE_ENABLED"), False),
            search_timeout_seconds=max(1.0, _env_float(_k("SEARCH_TIMEOUT_SECONDS"), 10.0)),
            search_max_results=max(1, _env_int(_k("SEARCH_MAX_RESULTS"), 5)),
            python_executable=_env(_k("PYTHON_EXECUTABLE"), sys.executable),
            python_timeout_seconds=max(1.0, _env_float(_k("PYTHON_TIMEOUT_SECONDS"), 10.0)),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
