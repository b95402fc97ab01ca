"""
Logging for hf-relay, built on loguru.

Levels:
- DEBUG: probe results, candidate skipping, payload shapes
- INFO:  dispatch start/finish, fallback model usage
- WARNING: degraded responses, usage sink failures
- ERROR: upstream failures and unexpected exceptions

Usage:
    from core.logger import logger

    logger.info("Dispatching {} for {}", task, user_id)
"""

from __future__ import annotations

import logging
import os
import sys

from loguru import logger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# path of an optional rotating file sink; console only when unset
LOG_FILE = os.getenv("LOG_FILE", "")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | "
    "{message}"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

logger.remove()

logger.add(
    sys.stdout,
    format=CONSOLE_FORMAT,
    level=LOG_LEVEL,
    colorize=sys.stdout.isatty(),
)

if LOG_FILE:
    logger.add(
        LOG_FILE,
        format=FILE_FORMAT,
        level="DEBUG",
        rotation="50 MB",
        retention="14 days",
        encoding="utf-8",
        enqueue=False,
        catch=True,
    )

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

__all__ = ["logger"]
