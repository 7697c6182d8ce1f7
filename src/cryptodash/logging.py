"""Centralized logging configuration using loguru."""

import sys

from loguru import logger

from cryptodash.config import settings

# Replace the default DEBUG handler; colorize=True keeps ANSI colors without a TTY
logger.remove()
logger.add(sys.stderr, level=settings.log_level.upper(), colorize=True)

__all__ = ["logger"]
