"""Logging setup for the stock count package.

Modules log through `get_logger(__name__)`; `configure_logging` installs a
single stream handler on the ``stock_count`` logger and renders any ``extra``
fields as ``key=value`` pairs after the message.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

__all__ = ["KeyValueFormatter", "configure_logging", "get_logger", "reset_logging"]

_LOGGER_PREFIX = "stock_count"

_STDLIB_KEYS: frozenset[str] = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {
    "message",
    "asctime",
    "taskName",
}


class KeyValueFormatter(logging.Formatter):
    """Plain-text formatter that appends structured ``extra`` fields."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = {key: val for key, val in vars(record).items() if key not in _STDLIB_KEYS}
        if not extras:
            return line
        rendered = " ".join(f"{key}={val}" for key, val in sorted(extras.items()))
        return f"{line} [{rendered}]"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``stock_count`` namespace."""

    if name == _LOGGER_PREFIX or name.startswith(f"{_LOGGER_PREFIX}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Configure the ``stock_count`` logger hierarchy (idempotent)."""

    global _configured
    if _configured:
        return
    _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)

    h: logging.Handler = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(KeyValueFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Drop handlers installed by `configure_logging`. Used by tests."""

    global _configured
    _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
