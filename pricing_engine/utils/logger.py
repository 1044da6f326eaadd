"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from pricing_engine.utils.config import get_settings


_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_NOISY_LOGGERS = ("httpx", "asyncio")

_LOGGER_INITIALIZED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install the root handler once; later calls are no-ops.

    Engine modules log collaborator fallbacks at WARNING, so third-party
    chatter below that level is muted to keep degraded paths visible.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(level=resolved_level, format=_LOG_FORMAT, stream=sys.stdout)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring logging on first use."""
    configure_logging()
    return logging.getLogger(name)
