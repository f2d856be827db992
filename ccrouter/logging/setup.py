"""Logging configuration for the router."""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL_ENV = "CCROUTER_LOG_LEVEL"


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Set up the router logger with a stdout handler.

    ``level`` wins over the ``CCROUTER_LOG_LEVEL`` environment variable.
    """
    logger = logging.getLogger("ccrouter")
    logger.setLevel(_resolve_level(level))

    # Clear any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logger.level)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Propagate to root so test log capture still sees records
    logger.propagate = True

    return logger


# Global logger instance
logger = setup_logging()
