# src/task_mirror/logging_setup.py

"""
Logging for the interactive CLI.

The console shows what a user sitting at the REPL cares about: mutations, sync
notices and failures. Background polling and HTTP client chatter only reach the
console when something goes wrong; the log file under the data dir keeps all of it.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "task_mirror.log"

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Minimum console level per logger prefix; the longest matching prefix wins.
CONSOLE_THRESHOLDS: dict[str, int] = {
    "task_mirror": logging.NOTSET,
    "task_mirror.remote.polling": logging.WARNING,
    "py.warnings": logging.ERROR,
}

# Anything not listed above (httpx, httpcore, asyncio, ...).
DEFAULT_CONSOLE_THRESHOLD = logging.ERROR

# Libraries whose DEBUG output would flood the file too.
QUIET_LIBRARIES = ("httpx", "httpcore")


def console_threshold(logger_name: str) -> int:
    best = ""
    for prefix in CONSOLE_THRESHOLDS:
        if logger_name == prefix or logger_name.startswith(prefix + "."):
            if len(prefix) > len(best):
                best = prefix
    return CONSOLE_THRESHOLDS[best] if best else DEFAULT_CONSOLE_THRESHOLD


class ConsoleFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= console_threshold(record.name)


def _build_handlers(log_file: Path, console_level: int, file_level: int) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.addFilter(ConsoleFilter())

    file = logging.FileHandler(str(log_file), encoding="utf-8")
    file.setLevel(file_level)

    for handler in (console, file):
        handler.setFormatter(formatter)
    return [console, file]


def setup_logging(
    *,
    log_dir: str | Path = ".local/task_mirror",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Replace the root logger's handlers with a filtered console handler and a file handler.

    Safe to call again: previous handlers are detached, not stacked.
    Returns the path of the log file.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for old in list(root.handlers):
        root.removeHandler(old)

    for handler in _build_handlers(log_file, console_level, file_level):
        root.addHandler(handler)

    # warnings.warn(...) arrives as 'py.warnings'.
    logging.captureWarnings(True)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
