"""Logging setup for the GinkoHub Tools API.

All loggers hang off a single ``ginkohub`` parent which writes to stdout.
Modules grab their logger at import time; handlers are attached later by
``configure_logging`` when the application is created.
"""

import logging
import sys
from typing import Optional

PARENT_LOGGER = "ginkohub"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the parent logger.

    Safe to call repeatedly; existing handlers are replaced.

    Args:
        level: Logging level name; falls back to ``Config.LOG_LEVEL``
    """
    if level is None:
        from ginkohub.config import Config

        level = Config.LOG_LEVEL

    parent = logging.getLogger(PARENT_LOGGER)
    parent.handlers.clear()
    parent.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    parent.addHandler(handler)
    parent.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module or component.

    Example:
        logger = get_logger("store")
        logger.info("Store ready")
    """
    return logging.getLogger(f"{PARENT_LOGGER}.{name}")
