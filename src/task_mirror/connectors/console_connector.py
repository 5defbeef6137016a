# src/task_mirror/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL on top of the asyncio loop.

    input() runs in a worker thread so subscription deliveries keep landing while the
    prompt is open. Every cache change prints a one-line sync notice.
    """
    logger.info("Console connector started (group=%s).", state.group_code)
    _print_ts("[CONSOLE] Type /help for commands. Use /exit to quit.\n")

    def _on_change(tasks: tuple[Task, ...]) -> None:
        print(f"\n[{_ts_local()}] [SYNC] {len(tasks)} tasks in view")

    remove_listener = state.cache.add_listener(_on_change)

    try:
        while True:
            try:
                line = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not line:
                continue

            if line.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                reply = await command_registry.handle(state, line)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is None:
                reply = "Commands start with '/'. Use /help to list available commands."
            _print_ts(reply)
    finally:
        remove_listener()
        logger.info("Console connector finished.")
