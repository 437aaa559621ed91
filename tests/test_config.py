# tests/test_config.py

from __future__ import annotations

import logging
import os
from pathlib import Path

from akara.config import Settings
from akara.logging_setup import _ConsoleNoiseFilter


def _clear(monkeypatch) -> None:
    for key in list(os.environ):
        if key.startswith("AKARA_"):
            monkeypatch.delenv(key, raising=False)


def test_defaults(monkeypatch) -> None:
    _clear(monkeypatch)
    s = Settings.from_env()

    assert s.engine_base_url == "http://localhost:11434/v1"
    assert s.engine_model == "llama3.1"
    assert s.engine_api_key == "ollama"
    assert s.task_max_iterations == 5
    assert s.task_tool_rounds == 1
    assert s.task_retention_seconds == 300.0
    assert s.heartbeat_interval_seconds == 30.0
    assert s.search_enabled is True and s.code_enabled is False
    assert s.conversations_db_path == Path(".local/akara") / "chatbot.sqlite3"


def test_overrides_and_bad_values(monkeypatch, tmp_path) -> None:
    _clear(monkeypatch)
    monkeypatch.setenv("AKARA_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("AKARA_TASK_MAX_ITERATIONS", "0")
    monkeypatch.setenv("AKARA_TASK_RETENTION_SECONDS", "not-a-number")
    monkeypatch.setenv("AKARA_CODE_ENABLED", "yes")
    monkeypatch.setenv("AKARA_ENGINE_CONNECT_TIMEOUT_SECONDS", "30")
    monkeypatch.setenv("AKARA_ENGINE_READ_TIMEOUT_SECONDS", "10")

    s = Settings.from_env()

    assert s.conversations_db_path == tmp_path / "chatbot.sqlite3"
    assert s.task_max_iterations == 1
    assert s.task_retention_seconds == 300.0
    assert s.code_enabled is True
    assert s.engine_read_timeout_seconds == 30.0


def test_console_filter_hides_broker_chatter() -> None:
    f = _ConsoleNoiseFilter()

    def rec(name: str, level: int) -> logging.LogRecord:
        return logging.LogRecord(name, level, __file__, 1, "msg", None, None)

    assert f.filter(rec("akara.tasks.runner", logging.INFO))
    assert not f.filter(rec("akara.tasks.broker", logging.INFO))
    assert f.filter(rec("akara.tasks.broker", logging.WARNING))
    assert not f.filter(rec("httpx", logging.WARNING))
