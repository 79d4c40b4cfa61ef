"""
Logging setup.

Configures loguru sinks for the API and worker processes.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger

from compensation.config.settings import settings


def setup_logging(process_name: str = "api") -> None:
    """Configure logger with stderr output and file rotation."""
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

    logger.info(f"Starting compensation engine ({process_name})...")
