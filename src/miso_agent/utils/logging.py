"""Colored logging for agent runs.

Messages carry their own ANSI highlights (the constants below). When stderr
is not a terminal those codes are stripped, so redirected logs stay plain
text. Warnings and errors get a short level tag, and exception tracebacks
are appended below the message.
"""

import logging
import re
import sys
from datetime import datetime

GREEN = "\x1b[32m"
RED = "\x1b[31m"
YELLOW = "\x1b[33m"
DIM = "\x1b[2m"
BOLD = "\x1b[1m"
RESET = "\x1b[0m"

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


class AgentFormatter(logging.Formatter):
    # level -> (color, tag)
    LEVEL_STYLES = {
        logging.DEBUG: (DIM, ""),
        logging.INFO: ("", ""),
        logging.WARNING: (YELLOW, "warn: "),
        logging.ERROR: (RED, "error: "),
        logging.CRITICAL: (RED + BOLD, "fatal: "),
    }

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        color, tag = self.LEVEL_STYLES.get(record.levelno, ("", ""))
        line = f"{DIM}[{ts}]{RESET} {color}{tag}{record.getMessage()}{RESET}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line if self.color else strip_ansi(line)


def _stderr_is_tty() -> bool:
    isatty = getattr(sys.stderr, "isatty", None)
    return bool(isatty and isatty())


def get_logger(name: str = "miso_agent", level: str | None = None) -> logging.Logger:
    """Logger writing to stderr; the level defaults to `settings.log_level`."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(AgentFormatter(color=_stderr_is_tty()))
        logger.addHandler(handler)
    if level is None:
        from miso_agent.config import settings

        level = settings.log_level
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
