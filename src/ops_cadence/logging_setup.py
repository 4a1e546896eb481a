# src/ops_cadence/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "cadence.log"

APP_LOGGER_PREFIX = "ops_cadence."

# Stores log one line per row/claim at DEBUG; on the console only their warnings show.
STORE_LOGGER_SUFFIX = ".store"
STORE_CONSOLE_LEVEL = logging.WARNING

# Anything outside the engine (including captured py.warnings).
FOREIGN_CONSOLE_LEVEL = logging.ERROR

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def console_threshold(logger_name: str) -> int:
    """Lowest level a record from logger_name needs to reach the console."""
    if logger_name.startswith(APP_LOGGER_PREFIX):
        if logger_name.endswith(STORE_LOGGER_SUFFIX):
            return STORE_CONSOLE_LEVEL
        return logging.NOTSET
    return FOREIGN_CONSOLE_LEVEL


class _OperatorConsoleFilter(logging.Filter):
    """Engine passes and decisions on the console; row-level store chatter stays in the file."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= console_threshold(record.name)


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """'debug' / 'WARNING' -> logging level; unknown names fall back to default."""
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/cadence",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route engine logs to stderr (filtered for operators) and to <log_dir>/cadence.log.

    Replaces any handlers already on the root logger, so calling it again (for
    example from a second CLI invocation in one process) does not duplicate lines.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_OperatorConsoleFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
