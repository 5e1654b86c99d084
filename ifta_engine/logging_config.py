"""Logging setup for the IFTA engine.

Modules log snake_case event names with structured ``extra`` fields::

    logger = get_logger("reconcilers")
    logger.info("import_committed", extra={"imported": 3, "source_kind": "load"})
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["get_logger", "configure_logging", "reset_logging"]

_LOGGER_PREFIX = "ifta_engine"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ifta_engine namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: Optional[logging.Handler] = None,
    console: Optional[Console] = None,
) -> None:
    """Configure the ifta_engine logger hierarchy (idempotent).

    Without an explicit handler, records go to a ``RichHandler`` on stderr.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    if handler is None:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
    root_logger.addHandler(handler)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True
