"""Logger configuration for the stitch client."""

import sys
from typing import Optional

from loguru import logger

from .settings import LoggingConfig


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure loguru logger for console and optional file output.

    Sets up logging with:
    - Console output at the configured level with colored output
    - File output with rotation and retention when a log file is set
    """
    config = config or LoggingConfig()

    # Remove default loguru handler
    logger.remove()

    if config.to_console:
        logger.add(
            sink=sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=config.level,
            colorize=True,
        )

    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            sink=str(config.log_file),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=config.level,
            rotation=config.rotation,
            retention=config.retention,
            compression="gz",  # Compress rotated logs
            enqueue=True,  # Thread-safe logging
        )

        logger.info(f"File logging enabled: {config.log_file}")
        logger.info(f"Log level: {config.level}")
