#!/usr/bin/env python3
"""
Connector logging

Every module asks for its logger once at import time:

    from shared.log import get_logger

    logger = get_logger(__name__)
    logger.info("Requested data", extra={"peer": "127.0.0.1:4001", "table": "test.t1"})

Records go to stderr so that stdout stays free for streamed rows. Setting
CDC_LOG_FILE=1 also appends them to logs/cdc.log. The level comes from the
caller, then CDC_LOG_LEVEL, then DEBUG under PYTHON_ENV=dev or pytest and
INFO otherwise.
"""

from __future__ import annotations
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from cdc.row import Row

LOG_DIR = Path("logs")
LOG_FILE = "cdc.log"

CONSOLE_FORMAT = '[%(levelname)-8s][%(asctime)s][%(name)-5s]: %(message)s'
FILE_FORMAT = '%(asctime)s | %(name)-30s | %(levelname)-8s | %(message)s'


# ========================================
#           FORMATTERS
# ========================================

class ContextFormatter(logging.Formatter):
    """Prepends [peer=.. table=.. gtid=..] for whichever of them the record carries"""

    CONTEXT_FIELDS = ("peer", "table", "gtid")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        pairs = []
        for key in self.CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value:
                pairs.append(f"{key}={value}")
        return f"[{' '.join(pairs)}] {text}" if pairs else text


class ColoredFormatter(ContextFormatter):
    """ContextFormatter with ANSI-colored level names, for terminals"""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',     # Cyan
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        # Other handlers share the record, so the plain name goes back afterwards
        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


# ========================================
#           SETUP
# ========================================

_configured = set()


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Return the logger for ``name``, attaching handlers on first use.

    Args:
        name: Usually __name__ of the calling module
        level: Explicit level name, overriding CDC_LOG_LEVEL
    """
    logger = logging.getLogger(name)
    if name not in _configured:
        _setup(logger, level)
        _configured.add(name)
    return logger


def configure_root_logging(level: str = "INFO") -> None:
    """
    Set up the root logger and move every connector logger to ``level``.

    The CLI calls this once, before running a command.
    """
    _setup(logging.getLogger(), level)

    resolved = _resolve_level(level)
    for name in _configured:
        logging.getLogger(name).setLevel(resolved)


def _setup(logger: logging.Logger, level: Optional[str]) -> None:
    logger.setLevel(_resolve_level(level))
    logger.handlers.clear()
    logger.addHandler(_console_handler())
    if _env_flag('CDC_LOG_FILE'):
        logger.addHandler(_file_handler())
    logger.propagate = False


def _resolve_level(level: Optional[str]) -> int:
    name = level or os.getenv('CDC_LOG_LEVEL')
    if name:
        return getattr(logging, name.upper(), logging.INFO)
    return logging.DEBUG if _is_development() else logging.INFO


def _is_development() -> bool:
    return os.getenv('PYTHON_ENV', '').lower() in ('dev', 'development') or 'pytest' in sys.modules


def _env_flag(var: str) -> bool:
    return os.getenv(var, '').lower() in ('1', 'true', 'yes')


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    if _is_development() and _stderr_has_color():
        handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    else:
        handler.setFormatter(ContextFormatter(fmt=CONSOLE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def _file_handler() -> logging.Handler:
    LOG_DIR.mkdir(exist_ok=True)
    handler = logging.FileHandler(LOG_DIR / LOG_FILE)
    handler.setFormatter(ContextFormatter(fmt=FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def _stderr_has_color() -> bool:
    if not (hasattr(sys.stderr, "isatty") and sys.stderr.isatty()):
        return False
    if os.getenv("TERM", "") == "dumb":
        return False
    if sys.platform == "win32":
        # Windows Terminal and VS Code set one of these
        return bool(os.getenv("WT_SESSION") or os.getenv("ANSICON") or os.getenv("TERM_PROGRAM") == "vscode")
    return True


# ========================================
#           CONVENIENCE FUNCTIONS
# ========================================

def log_cdc_event(logger: logging.Logger, level: str, message: str,
                  row: Optional["Row"] = None,
                  **context: Any) -> None:
    """
    Log a connector event with structured context.

    Args:
        logger: Logger instance
        level: "debug", "info", "warning" or "error"
        message: Log message
        row: Row whose GTID is added to the context, when it carries one
        **context: Additional context fields (peer, table)

    Example:
        log_cdc_event(logger, "debug", "Decoded row", row=row, table="test.t1")
    """
    extra = dict(context)
    if row is not None and row.has_gtid():
        extra['gtid'] = row.gtid()

    getattr(logger, level.lower())(message, extra=extra)
