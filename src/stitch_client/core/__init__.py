"""Core models and errors shared by every pipeline stage."""

from .entry import BATCH_OVERHEAD_BYTES, ENTRY_DELIMITER_BYTES, MAX_BATCH_SIZE_BYTES, MAX_ENTRY_BYTES, MAX_MESSAGES_PER_BATCH, Batch, Entry, now_millis
from .errors import BatchTooLargeError, ClientClosedError, DeliveryError, EntryTooLargeError, StitchClientError

__all__ = [
    # Models
    "Entry",
    "Batch",
    "now_millis",
    # Batch format
    "BATCH_OVERHEAD_BYTES",
    "ENTRY_DELIMITER_BYTES",
    "MAX_BATCH_SIZE_BYTES",
    "MAX_ENTRY_BYTES",
    "MAX_MESSAGES_PER_BATCH",
    # Errors
    "StitchClientError",
    "EntryTooLargeError",
    "BatchTooLargeError",
    "ClientClosedError",
    "DeliveryError",
]
