"""Record intake queuing module for the stitch client."""

from .intake_queue import IntakeQueue, QueueConfig

__all__ = ["IntakeQueue", "QueueConfig"]
