"""
core/logging_config.py - Logging Configuration

Two channels:
  - Console (stderr): WARNING+ by default, INFO+ with --verbose. Kept on
    stderr so reports written to stdout or files stay clean.
  - Debug log (optional rotating file): everything, including every retry
    and per-address fetch, for investigating a run with surprising
    discrepancies.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"
DEBUG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s:%(lineno)d - %(message)s"
DEBUG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Loggers of the HTTP stack that log every request at INFO/DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


class ConsoleFormatter(logging.Formatter):
    """Single-line console format, level name coloured on a TTY."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",      # dim
        logging.INFO: "\033[34m",      # blue
        logging.WARNING: "\033[33m",   # yellow
        logging.ERROR: "\033[31m",     # red
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, colorize: bool = False):
        super().__init__(CONSOLE_FORMAT, CONSOLE_DATEFMT)
        self.colorize = colorize

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if not self.colorize:
            return line
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return line
        return line.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)


def _stderr_is_tty() -> bool:
    isatty = getattr(sys.stderr, "isatty", None)
    return bool(isatty and isatty())


def setup_logging(
    level: str = "DEBUG",
    verbose: bool = False,
    console_output: bool = True,
    debug_log_file: Optional[str] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 2,
) -> logging.Logger:
    """
    Configure the root logger for one CLI run. Replaces existing handlers.

    Parameters
    ----------
    level          : Root logger level.
    verbose        : Lower the console threshold from WARNING to INFO.
    console_output : Attach the stderr handler.
    debug_log_file : Optional path for the rotating debug log.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
        console_handler.setFormatter(ConsoleFormatter(colorize=_stderr_is_tty()))
        root.addHandler(console_handler)

    if debug_log_file:
        log_path = Path(debug_log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(DEBUG_FORMAT, DEBUG_DATEFMT))
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
