"""Entry and Batch models for the stitch client pipeline.

An Entry is one caller-submitted record after serialization. Entries flow
through the pipeline: Client → Intake Queue → Buffer → Batch → Delivery.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, List

from .errors import EntryTooLargeError

# Batch body is a JSON array: "[" + ",".join(entries) + "]"
BATCH_OVERHEAD_BYTES = 2
ENTRY_DELIMITER_BYTES = 1

MAX_BATCH_SIZE_BYTES = 4_000_000
MAX_ENTRY_BYTES = MAX_BATCH_SIZE_BYTES - BATCH_OVERHEAD_BYTES
MAX_MESSAGES_PER_BATCH = 10_000


def now_millis() -> int:
    """Monotonic clock in milliseconds, used for entry arrival times."""
    return int(time.monotonic() * 1000)


@dataclass(frozen=True)
class Entry:
    """A serialized record waiting to be batched."""

    data: bytes
    enqueued_at_millis: int = field(default_factory=now_millis)
    callback_arg: Any = None

    def __post_init__(self):
        if len(self.data) > MAX_ENTRY_BYTES:
            raise EntryTooLargeError(len(self.data), MAX_ENTRY_BYTES)

    def size(self) -> int:
        """Return the serialized size of this entry in bytes."""
        return len(self.data)


@dataclass
class Batch:
    """An ordered, non-empty group of entries taken from the front of a buffer."""

    entries: List[Entry]
    serialized_size: int = 0
    batch_id: str = field(default_factory=lambda: f"batch_{uuid.uuid4().hex[:12]}")

    def size(self) -> int:
        """Return the number of entries in this batch."""
        return len(self.entries)

    def callback_args(self) -> List[Any]:
        """Callback tokens of the entries, in batch order."""
        return [entry.callback_arg for entry in self.entries]

    def raw_records(self) -> List[bytes]:
        return [entry.data for entry in self.entries]
