"""Exception taxonomy for the stitch client.

Validation failures (oversized records) and lifecycle violations (submitting
to a closed client) are raised synchronously on the calling thread. Delivery
failures reach callers through callbacks, and are raised as DeliveryError
only from synchronous calls that performed the delivery themselves. A full
intake queue is never an exception: offer() returns False.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..sender.delivery import DeliveryResult


class StitchClientError(Exception):
    """Base class for all stitch client errors."""


class EntryTooLargeError(StitchClientError, ValueError):
    """A single record cannot fit in any batch."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Serialized record is {size} bytes, limit is {limit} bytes")


class BatchTooLargeError(EntryTooLargeError):
    """A pre-assembled batch exceeds the maximum batch size."""

    def __init__(self, size: int, limit: int):
        super().__init__(size, limit)
        self.args = (f"Serialized batch is {size} bytes, limit is {limit} bytes",)


class ClientClosedError(StitchClientError):
    """Submission attempted after the client was closed."""


class DeliveryError(StitchClientError):
    """A batch could not be delivered.

    Carries the DeliveryResult of the failed transport call so callers can
    inspect the status code and diagnostic content.
    """

    def __init__(self, result: "DeliveryResult", message: Optional[str] = None):
        self.result = result
        super().__init__(message or f"Batch delivery failed: {result.error_message}")
