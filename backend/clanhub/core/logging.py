"""
Logging setup.

Configures the shared loguru logger with a single stderr sink.
"""

import sys

from loguru import logger

from clanhub.core.config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str | None = None) -> None:
    """
    Install the application log sink.

    Args:
        level: Override log level (DEBUG, INFO, WARNING, ERROR)
    """
    level = level or settings.log_level

    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )

    logger.info(f"Logging initialized with level: {level}")
