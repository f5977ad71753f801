"""Record buffering module for assembling batches."""

from .batch_buffer import BatchBuffer

__all__ = ["BatchBuffer"]
