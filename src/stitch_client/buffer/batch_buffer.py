"""Batch buffer for accumulating serialized records into deliverable batches.

This module provides the FIFO buffer that sits between record intake and
delivery. Every insertion updates a running byte count, and `take` decides
whether the accumulated content is ready to flush based on byte size,
message count and the age of the oldest entry. All operations run under a
single lock and never block on I/O.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Callable, Dict, Optional

from loguru import logger

from ..core.entry import BATCH_OVERHEAD_BYTES, ENTRY_DELIMITER_BYTES, MAX_BATCH_SIZE_BYTES, MAX_MESSAGES_PER_BATCH, Batch, Entry, now_millis
from ..core.errors import EntryTooLargeError


class BatchBuffer:
    """Thread-safe FIFO of entries with byte accounting and readiness policy."""

    def __init__(
        self,
        max_batch_size_bytes: int = MAX_BATCH_SIZE_BYTES,
        max_messages_per_batch: int = MAX_MESSAGES_PER_BATCH,
        clock: Callable[[], int] = now_millis,
    ):
        """Initialize the buffer.

        Args:
            max_batch_size_bytes: Hard ceiling on the serialized size of a batch
            max_messages_per_batch: Maximum number of entries in a batch
            clock: Millisecond clock used to age entries
        """
        self.max_batch_size_bytes = max_batch_size_bytes
        self.max_messages_per_batch = max_messages_per_batch
        self._clock = clock

        self._queue: deque[Entry] = deque()
        self._available_bytes = 0
        self._lock = threading.Lock()

        # Statistics
        self._total_put = 0
        self._total_taken = 0
        self._total_batches = 0

    @property
    def max_entry_bytes(self) -> int:
        """Largest entry that fits in a batch on its own."""
        return self.max_batch_size_bytes - BATCH_OVERHEAD_BYTES

    def put(self, entry: Entry) -> None:
        """Append an entry to the tail of the buffer.

        Raises:
            EntryTooLargeError: if the entry can never fit in a batch
        """
        entry_size = entry.size()
        if entry_size > self.max_entry_bytes:
            raise EntryTooLargeError(entry_size, self.max_entry_bytes)

        with self._lock:
            self._queue.append(entry)
            self._available_bytes += entry_size
            self._total_put += 1

    def take(self, batch_size_bytes: int, batch_delay_millis: float) -> Optional[Batch]:
        """Remove and return a batch if the buffer is ready.

        The buffer is ready when the pending bytes reach `batch_size_bytes`,
        when the pending entries reach the per-batch message limit, or when
        the oldest entry has waited at least `batch_delay_millis`.
        `take(0, 0)` forces out everything up to the batch ceiling.

        Returns:
            The batch, or None if the buffer is empty or not ready. A None
            result never modifies the buffer.
        """
        with self._lock:
            if not self._is_ready(batch_size_bytes, batch_delay_millis):
                return None

            entries = []
            batch_bytes = BATCH_OVERHEAD_BYTES
            while self._queue and len(entries) < self.max_messages_per_batch:
                entry = self._queue[0]
                added = entry.size() + (ENTRY_DELIMITER_BYTES if entries else 0)
                if entries and batch_bytes + added > self.max_batch_size_bytes:
                    break
                self._queue.popleft()
                self._available_bytes -= entry.size()
                entries.append(entry)
                batch_bytes += added

            self._total_taken += len(entries)
            self._total_batches += 1

        batch = Batch(entries=entries, serialized_size=batch_bytes)
        logger.debug(f"Took batch {batch.batch_id} with {len(entries)} entries ({batch_bytes} bytes)")
        return batch

    def is_ready(self, batch_size_bytes: int, batch_delay_millis: float) -> bool:
        """Check the readiness policy without taking anything."""
        with self._lock:
            return self._is_ready(batch_size_bytes, batch_delay_millis)

    def millis_until_due(self, batch_delay_millis: float) -> Optional[float]:
        """Time until the oldest entry reaches the batch delay.

        Returns:
            Milliseconds remaining (0 if already due), or None when the buffer
            is empty or the delay is infinite.
        """
        with self._lock:
            if not self._queue or batch_delay_millis == float("inf"):
                return None
            age = self._clock() - self._queue[0].enqueued_at_millis
            return max(0, batch_delay_millis - age)

    def available_bytes(self) -> int:
        with self._lock:
            return self._available_bytes

    def size(self) -> int:
        """Return the number of pending entries."""
        with self._lock:
            return len(self._queue)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._queue

    def get_stats(self) -> Dict[str, Any]:
        """Get buffer statistics."""
        with self._lock:
            return {
                "pending_entries": len(self._queue),
                "pending_bytes": self._available_bytes,
                "total_put": self._total_put,
                "total_taken": self._total_taken,
                "total_batches": self._total_batches,
                "max_batch_size_bytes": self.max_batch_size_bytes,
                "max_messages_per_batch": self.max_messages_per_batch,
            }

    def _is_ready(self, batch_size_bytes: int, batch_delay_millis: float) -> bool:
        # Caller holds self._lock
        if not self._queue:
            return False
        return (
            self._available_bytes >= batch_size_bytes
            or len(self._queue) >= self.max_messages_per_batch
            or self._clock() - self._queue[0].enqueued_at_millis >= batch_delay_millis
        )
