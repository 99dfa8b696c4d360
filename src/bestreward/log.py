"""
Logging setup.

Configures the loguru logger for the API and the bot.
"""
import sys

from loguru import logger

from bestreward.config import settings


def setup_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            encoding="utf-8",
        )
