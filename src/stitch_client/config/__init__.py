"""Configuration module for the stitch client."""

from .logger_config import setup_logging
from .settings import ClientConfig, LoggingConfig

__all__ = ["ClientConfig", "LoggingConfig", "setup_logging"]
