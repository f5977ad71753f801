"""Configuration management for the stitch client.

This module provides the client configuration with environment variable
overrides, and derives the per-component configurations from it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

from ..core.entry import BATCH_OVERHEAD_BYTES, MAX_BATCH_SIZE_BYTES, MAX_MESSAGES_PER_BATCH
from ..queuer import QueueConfig
from ..sender.http_transport import DEFAULT_PUSH_URL, TransportConfig
from ..worker import WorkerConfig


@dataclass
class LoggingConfig:
    """Configuration for loguru sinks."""

    level: str = "INFO"
    to_console: bool = True
    log_file: Optional[Path] = None  # No file sink unless set
    rotation: str = "10 MB"
    retention: str = "7 days"

    def __post_init__(self):
        """Apply environment variable overrides."""
        if level := os.getenv("STITCH_LOG_LEVEL"):
            self.level = level.upper()

        if log_file := os.getenv("STITCH_LOG_FILE"):
            self.log_file = Path(log_file)


@dataclass
class ClientConfig:
    """Complete stitch client configuration."""

    # Push API
    push_url: str = DEFAULT_PUSH_URL
    token: str = ""
    http_timeout_seconds: float = 120.0

    # Batching
    max_batch_size_bytes: int = MAX_BATCH_SIZE_BYTES  # Hard ceiling per batch
    batch_size_bytes: int = MAX_BATCH_SIZE_BYTES  # Flush threshold, 0 = every record
    max_messages_per_batch: int = MAX_MESSAGES_PER_BATCH
    batch_delay_millis: float = 60_000

    # Intake
    intake_queue_capacity: int = 10_000

    content_type: str = "application/json"
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        """Apply environment variable overrides."""
        self._apply_env_overrides()

    @property
    def max_entry_bytes(self) -> int:
        """Largest serialized record that fits in a batch."""
        return self.max_batch_size_bytes - BATCH_OVERHEAD_BYTES

    def _apply_env_overrides(self):
        """Apply configuration overrides from environment variables."""
        if push_url := os.getenv("STITCH_PUSH_URL"):
            self.push_url = push_url

        if token := os.getenv("STITCH_TOKEN"):
            self.token = token

        for env_name, attr in (
            ("STITCH_MAX_BATCH_SIZE_BYTES", "max_batch_size_bytes"),
            ("STITCH_BATCH_SIZE_BYTES", "batch_size_bytes"),
            ("STITCH_MAX_MESSAGES_PER_BATCH", "max_messages_per_batch"),
            ("STITCH_BATCH_DELAY_MILLIS", "batch_delay_millis"),
            ("STITCH_INTAKE_QUEUE_CAPACITY", "intake_queue_capacity"),
        ):
            if value := os.getenv(env_name):
                try:
                    setattr(self, attr, int(value))
                except ValueError:
                    logger.warning(f"Invalid {env_name}: {value}")

        if timeout := os.getenv("STITCH_HTTP_TIMEOUT_SECONDS"):
            try:
                self.http_timeout_seconds = float(timeout)
            except ValueError:
                logger.warning(f"Invalid STITCH_HTTP_TIMEOUT_SECONDS: {timeout}")

    def get_queue_config(self) -> QueueConfig:
        """Get configuration for the intake queue."""
        return QueueConfig(max_size=self.intake_queue_capacity)

    def get_worker_config(self) -> WorkerConfig:
        """Get flush thresholds for the async worker."""
        return WorkerConfig(batch_size_bytes=self.batch_size_bytes, batch_delay_millis=self.batch_delay_millis)

    def get_transport_config(self) -> TransportConfig:
        """Get configuration for the HTTP transport."""
        return TransportConfig(push_url=self.push_url, token=self.token, timeout_seconds=self.http_timeout_seconds)

    def validate(self) -> tuple[bool, list[str]]:
        """Validate the configuration.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if self.max_batch_size_bytes <= BATCH_OVERHEAD_BYTES:
            errors.append(f"Max batch size must be larger than {BATCH_OVERHEAD_BYTES} bytes")

        if self.max_batch_size_bytes > MAX_BATCH_SIZE_BYTES:
            errors.append(f"Max batch size cannot exceed {MAX_BATCH_SIZE_BYTES} bytes")

        if self.batch_size_bytes < 0:
            errors.append("Batch size threshold cannot be negative")

        if not 0 < self.max_messages_per_batch <= MAX_MESSAGES_PER_BATCH:
            errors.append(f"Max messages per batch must be between 1 and {MAX_MESSAGES_PER_BATCH}")

        if self.batch_delay_millis < 0:
            errors.append("Batch delay cannot be negative")

        if self.intake_queue_capacity <= 0:
            errors.append("Intake queue capacity must be positive")

        if self.http_timeout_seconds <= 0:
            errors.append("HTTP timeout must be positive")

        return len(errors) == 0, errors
