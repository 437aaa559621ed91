# src/akara/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import ConsoleSession
from ..cli.commands import registry as command_registry
from ..core.chat import ConversationBusyError, generate_title, start_chat
from ..core.state import AppState
from ..llm.client import friendly_engine_error_message
from ..tasks.events import ChunkEvent, DoneEvent, ErrorEvent
from ..tasks.task_api import get_active_task, subscribe

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def print_task_stream(state: AppState, task_id: str, from_index: int = 0) -> bool:
    """
    Subscribe to a task and print its fragments as they arrive.

    Returns True when the task finished with `done`, False on error or unknown task.
    Heartbeats are ignored.
    """
    sub = subscribe(state, task_id, from_index)
    if sub is None:
        _print_ts(f"[TASK] Task {task_id[:8]} not found (finished tasks are kept only for a few minutes).")
        return False

    app_name = str(getattr(state.settings, "app_name", "akara"))
    printed = False
    ok = False
    try:
        async for event in sub:
            if isinstance(event, ChunkEvent):
                if not printed:
                    print(f"[{_ts_local()}] <<< {app_name}: ", end="", flush=True)
                    printed = True
                print(event.content, end="", flush=True)
            elif isinstance(event, DoneEvent):
                ok = True
            elif isinstance(event, ErrorEvent):
                if printed:
                    print()
                _print_ts(f"[ENGINE] {friendly_engine_error_message(RuntimeError(event.error))}")
    finally:
        sub.cancel()

    if ok and not printed:
        _print_ts("[ENGINE] No output (model produced no content).")
    elif printed:
        print("\n")
    return ok


async def _attach(state: AppState, session: ConsoleSession, args: list[str]) -> None:
    task_id = get_active_task(state, session.conversation_id) or session.last_task_id
    if task_id is None:
        task_id = state.registry.find_latest_by_conversation(session.conversation_id)
    if task_id is None:
        _print_ts("[TASK] No task to attach to in this conversation.")
        return
    try:
        from_index = int(args[0]) if args else 0
    except ValueError:
        _print_ts("Usage: /attach [from_index]")
        return
    await print_task_stream(state, task_id, from_index)


async def _read_line(prompt: str) -> str:
    # input() blocks; keep the event loop (and running tasks) going while we wait.
    return await asyncio.to_thread(input, prompt)


async def run_console_loop(state: AppState, session: ConsoleSession | None = None) -> None:
    session = session or ConsoleSession.new(state.settings)
    logger.info("Console connector started (conversation=%s).", session.conversation_id[:8])
    _print_ts("[CONSOLE] Type your messages. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = (await _read_line(">>> You: ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if user_input.split()[0].lower() == "/attach":
            await _attach(state, session, user_input.split()[1:])
            continue

        try:
            cmd_response = await command_registry.handle(state, session, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)
            continue

        try:
            task_id = await start_chat(state, session.conversation_id, user_input, session.options)
        except ConversationBusyError as e:
            _print_ts(f"[TASK] Still answering the previous message (task {e.task_id[:8]}). Use /attach to follow it.")
            continue
        except Exception:
            logger.exception("Console chat handler crashed.")
            _print_ts("Internal error while starting a reply.")
            continue

        session.last_task_id = task_id
        session.last_user_message = user_input

        ok = await print_task_stream(state, task_id)

        if ok and not session.titled:
            title = await generate_title(state, session.conversation_id, user_input)
            session.titled = True
            logger.debug("Conversation %s titled %r", session.conversation_id[:8], title)

    logger.info("Console connector finished.")
