# src/task_mirror/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, subscribes to the configured group,
then runs the console REPL until /exit or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown, switch_group
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        if settings.group_code:
            result = await switch_group(state, settings.group_code)
            if result.ok:
                logger.info("Subscribed to group %s (%d tasks).", settings.group_code, len(state.cache))
        else:
            logger.info("No TASKMIRROR_GROUP_CODE set; use /group <code> to subscribe.")

        await run_console_loop(state)
    finally:
        await shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (backend=%s)...", settings.app_name, settings.backend)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")

    logger.info("Bye.")


if __name__ == "__main__":
    main()
