"""
Logging setup shared by every overlaygraph module.

The level comes from LOG_LEVEL (environment or a local .env file) and
falls back to INFO when unset or invalid.
"""

import logging
import os
import sys

from dotenv import load_dotenv


load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
if LOG_LEVEL not in VALID_LOG_LEVELS:
    LOG_LEVEL = "INFO"


class ANSIColors:
    """Terminal colors per level."""

    DEBUG = "\033[36m"
    INFO = "\033[32m"
    WARNING = "\033[33m"
    ERROR = "\033[31m"
    CRITICAL = "\033[1;31m"
    RESET = "\033[0m"


class ColorFormatter(logging.Formatter):
    """Formatter that wraps records in ANSI colors when writing to a tty."""

    def __init__(self, fmt: str, use_color: bool = True):
        super().__init__(fmt)
        self.use_color = use_color

    def format(self, record):
        message = super().format(record)
        if not self.use_color:
            return message

        color = {
            logging.DEBUG: ANSIColors.DEBUG,
            logging.INFO: ANSIColors.INFO,
            logging.WARNING: ANSIColors.WARNING,
            logging.ERROR: ANSIColors.ERROR,
            logging.CRITICAL: ANSIColors.CRITICAL,
        }.get(record.levelno, ANSIColors.RESET)

        return f"{color}{message}{ANSIColors.RESET}"


_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(ColorFormatter(
    "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    use_color=sys.stderr.isatty(),
))

_root = logging.getLogger("overlaygraph")
_root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
if not _root.handlers:
    _root.addHandler(_handler)


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the overlaygraph hierarchy for a module."""
    if not name.startswith("overlaygraph"):
        name = f"overlaygraph.{name.split('.')[-1]}"
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Change the package log level at runtime (used by the CLI)."""
    level = level.upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    _root.setLevel(getattr(logging, level))
