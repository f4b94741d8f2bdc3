"""
Console and file logging for draft runs.

Records emitted while a request is bound (see ``structured_log.bind_request``)
are tagged with the draft id and actor, so interleaved generation and
refinement requests stay readable on one console.
"""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Optional

import colorama
import structlog
from colorama import Fore, Style

colorama.init(autoreset=True)

ROOT_LOGGER = "draftsmith"

CONSOLE_FORMAT = "%(levelname)-8s | %(request)s%(message)s"
DEBUG_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(request)s%(message)s"
FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | "
    "draft=%(draft_id)s actor=%(actor)s | %(message)s"
)


class LogLevel(str, Enum):
    """Verbosity names accepted by settings.yaml."""

    MINIMAL = "minimal"  # warnings and errors
    NORMAL = "normal"
    DETAILED = "detailed"  # includes prompt sizes and per-call timings


_LEVELS = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.DETAILED: logging.DEBUG,
}


def resolve_level(level: LogLevel, debug: bool = False) -> int:
    return logging.DEBUG if debug else _LEVELS[LogLevel(level)]


class RequestContextFilter(logging.Filter):
    """Copy the bound draft id and actor onto every record."""

    def filter(self, record):
        bound = structlog.contextvars.get_contextvars()
        record.draft_id = bound.get("draft_id", "-")
        record.actor = bound.get("actor", "-")
        record.request = f"[{record.draft_id}] " if "draft_id" in bound else ""
        return True


class ColoredFormatter(logging.Formatter):
    """Colors the level name without touching the shared record."""

    COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Style.BRIGHT,
    }

    def format(self, record):
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{self.COLORS.get(record.levelname, '')}{record.levelname}{Style.RESET_ALL}"
        if not hasattr(record, "request"):
            record.request = ""
        return super().format(record)


def setup_logging(
    level: LogLevel = LogLevel.NORMAL,
    log_file: Optional[str] = None,
    debug: bool = False,
) -> logging.Logger:
    """
    Configure the ``draftsmith`` logger.

    Args:
        level: Console verbosity
        log_file: Optional path; the file always receives DEBUG records
        debug: Force DEBUG on the console and show timestamps and logger names

    Returns:
        The configured root project logger
    """
    console_level = resolve_level(level, debug)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else console_level)
    logger.handlers.clear()
    context_filter = RequestContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.addFilter(context_filter)
    console_handler.setFormatter(
        ColoredFormatter(DEBUG_CONSOLE_FORMAT, datefmt="%H:%M:%S") if debug else ColoredFormatter(CONSOLE_FORMAT)
    )
    logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``draftsmith`` namespace."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
