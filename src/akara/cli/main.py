# src/akara/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL on an asyncio loop.
Background tasks keep running while the console waits for input; on exit they get a
bounded grace period to finish (and persist) before clients are closed.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _serve(state: AppState) -> None:
    try:
        await run_console_loop(state)
    finally:
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=getattr(settings, "data_dir", ".local/akara"), console_level=console_level)

    logger.info("Starting %s... (log file: %s)", getattr(settings, "app_name", "akara"), log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(_serve(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
