# src/akara/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "akara.log"
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that only reach the console at WARNING+ (subscribe/unsubscribe lines
# would interleave with streamed text).
_QUIET_APP_LOGGERS = ("akara.tasks.broker",)
_NOISY_LIBRARIES = ("httpx", "httpcore", "openai", "asyncio")


class _ConsoleNoiseFilter(logging.Filter):
    """akara.* passes (minus the quiet loggers); everything else only at ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith("akara."):
            return record.levelno >= logging.ERROR
        if record.name in _QUIET_APP_LOGGERS:
            return record.levelno >= logging.WARNING
        return True


def _console_handler(level: int, fmt: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.addFilter(_ConsoleNoiseFilter())
    return handler


def _file_handler(path: Path, level: int, fmt: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(str(path), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/akara",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Filtered console output for the REPL, full DEBUG log in `<log_dir>/akara.log`.

    Call once at startup; replaces any handlers already on the root logger.
    Returns the log file path.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / LOG_FILE_NAME

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_console_handler(console_level, fmt))
    root.addHandler(_file_handler(log_file, file_level, fmt))

    logging.captureWarnings(True)
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
