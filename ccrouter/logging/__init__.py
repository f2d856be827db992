"""Logging module for the router."""

from .setup import logger, setup_logging

__all__ = [
    "logger",
    "setup_logging",
]
