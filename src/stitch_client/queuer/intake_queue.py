"""Bounded intake queue between producer threads and the async worker.

This module provides the thread-safe queue that producers submit entries to.
Its fixed capacity is the backpressure mechanism: while the worker is busy
delivering, the queue fills up and producers either get a False return from
`offer` or block in `put` until space frees up.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from ..core.errors import ClientClosedError


@dataclass
class QueueConfig:
    """Configuration for the intake queue."""

    max_size: int = 10_000  # Maximum entries waiting for the worker


class IntakeQueue:
    """Thread-safe bounded FIFO with blocking and non-blocking admission."""

    def __init__(self, config: QueueConfig = QueueConfig()):
        """Initialize the intake queue.

        Args:
            config: Queue configuration
        """
        self.config = config
        self._queue: deque[Any] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._closed = False

        # Statistics
        self._total_enqueued = 0
        self._total_dequeued = 0
        self._total_rejected = 0

    def offer(self, item: Any, timeout: Optional[float] = None) -> bool:
        """Add an item if there is room.

        Args:
            item: Item to enqueue
            timeout: Seconds to wait for space. None returns immediately.

        Returns:
            True if enqueued, False if the queue stayed full

        Raises:
            ClientClosedError: if the queue has been closed
        """
        with self._lock:
            self._check_open()

            if len(self._queue) >= self.config.max_size:
                if timeout is None or timeout <= 0:
                    self._total_rejected += 1
                    return False

                deadline = time.monotonic() + timeout
                while len(self._queue) >= self.config.max_size:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        self._total_rejected += 1
                        logger.debug(f"Intake queue still full after {timeout}s, rejecting item")
                        return False
                    self._not_full.wait(remaining)
                    self._check_open()

            self._append(item)
            return True

    def put(self, item: Any) -> None:
        """Add an item, waiting indefinitely for space.

        Raises:
            ClientClosedError: if the queue is closed before space frees up
        """
        with self._lock:
            self._check_open()
            while len(self._queue) >= self.config.max_size:
                self._not_full.wait()
                self._check_open()
            self._append(item)

    def put_control(self, item: Any) -> None:
        """Add a control marker, bypassing capacity and the closed flag."""
        with self._lock:
            self._queue.append(item)
            self._not_empty.notify()

    def take(self, timeout: Optional[float] = None) -> Optional[Any]:
        """Remove and return the oldest item.

        Args:
            timeout: Seconds to wait for an item. None waits indefinitely.

        Returns:
            The item, or None if the timeout elapsed first
        """
        with self._lock:
            if not self._queue:
                if timeout is None:
                    while not self._queue:
                        self._not_empty.wait()
                elif not self._not_empty.wait_for(lambda: len(self._queue) > 0, timeout):
                    return None

            item = self._queue.popleft()
            self._total_dequeued += 1
            self._not_full.notify()
            return item

    def close(self) -> None:
        """Reject further submissions and wake producers waiting for space."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._not_full.notify_all()
            logger.debug(f"Intake queue closed with {len(self._queue)} items pending")

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def size(self) -> int:
        """Return the current queue size."""
        with self._lock:
            return len(self._queue)

    def get_stats(self) -> dict:
        """Get queue statistics."""
        with self._lock:
            return {
                "current_size": len(self._queue),
                "max_size": self.config.max_size,
                "total_enqueued": self._total_enqueued,
                "total_dequeued": self._total_dequeued,
                "total_rejected": self._total_rejected,
                "closed": self._closed,
                "utilization": len(self._queue) / self.config.max_size,
            }

    def _append(self, item: Any) -> None:
        self._queue.append(item)
        self._total_enqueued += 1
        self._not_empty.notify()

    def _check_open(self) -> None:
        if self._closed:
            raise ClientClosedError("Client is closed, cannot accept new records")
