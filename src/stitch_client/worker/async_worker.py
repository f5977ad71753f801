"""Async worker that owns buffering and delivery for a client.

A single dedicated thread consumes the bounded intake queue, puts each entry
into the batch buffer and delivers any batch the buffer reports as ready.
Delivery runs synchronously on the worker thread, so a slow transport stops
the worker from draining the intake queue and producers feel it as
backpressure.

The worker also serves synchronous callers. While the thread runs, `submit`
queues the entry behind earlier submissions and waits for the worker to
buffer it, so a producer's records keep their order. Without a running
thread, `submit_direct` buffers and delivers on the caller's thread.

Taking a batch and sending it happen under one re-entrant send lock, so the
transport is never called concurrently and batches go out in the order they
were assembled. Callbacks run while the lock is held and may call back into
the worker.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from ..buffer import BatchBuffer
from ..core.entry import Batch, Entry
from ..core.errors import ClientClosedError, DeliveryError
from ..queuer import IntakeQueue
from ..sender import DeliveryPipeline, DeliveryResult


class WorkerState(str, Enum):
    """Lifecycle states of the async worker."""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass
class WorkerConfig:
    """Flush thresholds used by the worker."""

    batch_size_bytes: int = 4_000_000  # 0 = flush on every record
    batch_delay_millis: float = 60_000  # Maximum age of the oldest buffered record


@dataclass
class _FlushRequest:
    """Control marker asking the worker to drain the buffer."""

    done: threading.Event = field(default_factory=threading.Event)


@dataclass
class _Submission:
    """Entry whose producer waits for the worker to buffer it."""

    entry: Entry
    done: threading.Event = field(default_factory=threading.Event)
    results: List[DeliveryResult] = field(default_factory=list)
    error: Optional[Exception] = None


_END_OF_STREAM = object()


class AsyncWorker:
    """Single-thread consumer of the intake queue."""

    def __init__(
        self,
        buffer: BatchBuffer,
        pipeline: DeliveryPipeline,
        intake_queue: IntakeQueue,
        config: WorkerConfig = WorkerConfig(),
    ):
        """Initialize the worker.

        Args:
            buffer: Buffer owned by this worker
            pipeline: Delivery pipeline for ready batches
            intake_queue: Queue the worker consumes
            config: Flush thresholds
        """
        self.buffer = buffer
        self.pipeline = pipeline
        self.intake_queue = intake_queue
        self.config = config

        self._state = WorkerState.IDLE
        self._state_lock = threading.Lock()
        self._send_lock = threading.RLock()
        self._sender: Optional[threading.Thread] = None  # Thread inside pipeline.deliver
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[datetime] = None

        # Statistics
        self._total_entries_processed = 0
        self._total_flush_requests = 0
        self._total_loop_errors = 0

    @property
    def state(self) -> WorkerState:
        with self._state_lock:
            return self._state

    @property
    def running(self) -> bool:
        return self.state == WorkerState.RUNNING

    def in_delivery(self) -> bool:
        """True on the worker thread or inside a delivery callback.

        Such callers must not wait on the worker, since it is blocked on them.
        """
        current = threading.current_thread()
        return current is self._thread or current is self._sender

    def start(self) -> None:
        """Start the worker thread. A stopped worker cannot be restarted."""
        with self._state_lock:
            if self._state == WorkerState.RUNNING:
                logger.warning("Worker is already running")
                return
            if self._state != WorkerState.IDLE:
                raise ClientClosedError("Worker has been stopped and cannot be restarted")

            self._state = WorkerState.RUNNING
            self._started_at = datetime.now()
            self._thread = threading.Thread(target=self._run, name="stitch-client-worker", daemon=True)
            self._thread.start()
            logger.info("Started async worker")

    def stop(self) -> None:
        """Signal end of stream and block until the worker has drained and exited.

        Called from inside a delivery the worker cannot be joined; it drains
        once the current callback returns.
        """
        with self._state_lock:
            was_idle = self._state == WorkerState.IDLE
            if was_idle:
                self._state = WorkerState.STOPPED
            thread = self._thread

        self.intake_queue.close()
        if was_idle:
            return
        self.intake_queue.put_control(_END_OF_STREAM)

        if thread is None or self.in_delivery():
            logger.debug("Stop requested from within a delivery, not waiting for the worker")
            return
        thread.join()

    def submit(self, entry: Entry) -> List[DeliveryResult]:
        """Buffer an entry after everything submitted before it and deliver any ready batch.

        Raises:
            ClientClosedError: if the intake queue was closed
            DeliveryError: if a batch this call flushed failed
        """
        if not self.running or self.in_delivery():
            return self.submit_direct(entry)

        submission = _Submission(entry=entry)
        self.intake_queue.put(submission)
        submission.done.wait()

        if submission.error is not None:
            raise submission.error
        for result in submission.results:
            if not result.success:
                raise DeliveryError(result) from result.error
        return submission.results

    def submit_direct(self, entry: Entry) -> List[DeliveryResult]:
        """Buffer an entry on the caller's thread and deliver any ready batch.

        Raises:
            EntryTooLargeError: if the entry can never fit in a batch
            DeliveryError: if a batch this call flushed failed
        """
        self.buffer.put(entry)
        return self.flush_ready(raise_on_failure=True)

    def accept(self, entry: Entry) -> List[DeliveryResult]:
        """Buffer an entry on the calling thread; failures only reach the callbacks."""
        self.buffer.put(entry)
        self._total_entries_processed += 1
        return self.flush_ready()

    def flush_ready(self, force: bool = False, raise_on_failure: bool = False) -> List[DeliveryResult]:
        """Deliver batches while the buffer is ready.

        Args:
            force: Drain everything regardless of thresholds
            raise_on_failure: Raise DeliveryError on the first failed batch

        Returns:
            Results of the batches delivered by this call
        """
        results: List[DeliveryResult] = []
        size_threshold = 0 if force else self.config.batch_size_bytes
        delay_threshold = 0 if force else self.config.batch_delay_millis

        while self.buffer.is_ready(size_threshold, delay_threshold):
            with self._send_lock:
                batch = self.buffer.take(size_threshold, delay_threshold)
                if batch is None:
                    break
                result = self._deliver(batch)

            results.append(result)
            if raise_on_failure and not result.success:
                raise DeliveryError(result) from result.error

        return results

    def deliver_batch(self, batch: Batch) -> DeliveryResult:
        """Deliver a pre-assembled batch under the send lock."""
        with self._send_lock:
            return self._deliver(batch)

    def request_flush(self, timeout: Optional[float] = None) -> bool:
        """Ask the worker to deliver everything submitted before this call.

        Returns:
            True once the flush completed, False if the timeout elapsed first
        """
        if self.in_delivery():
            self.flush_ready(force=True)
            return True

        request = _FlushRequest()
        self.intake_queue.put_control(request)
        return request.done.wait(timeout)

    def get_stats(self) -> Dict[str, Any]:
        """Get worker statistics."""
        return {
            "state": self.state.value,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "total_entries_processed": self._total_entries_processed,
            "total_flush_requests": self._total_flush_requests,
            "total_loop_errors": self._total_loop_errors,
            "config": {
                "batch_size_bytes": self.config.batch_size_bytes,
                "batch_delay_millis": self.config.batch_delay_millis,
            },
        }

    def _deliver(self, batch: Batch) -> DeliveryResult:
        # Caller holds the send lock
        previous, self._sender = self._sender, threading.current_thread()
        try:
            return self.pipeline.deliver(batch)
        finally:
            self._sender = previous

    def _run(self) -> None:
        """Main worker loop."""
        logger.debug("Worker loop started")

        while True:
            try:
                due = self.buffer.millis_until_due(self.config.batch_delay_millis)
                timeout = None if due is None else min(due / 1000.0, threading.TIMEOUT_MAX)
                item = self.intake_queue.take(timeout=timeout)

                if item is _END_OF_STREAM:
                    break

                if item is None:
                    # Oldest buffered entry reached the batch delay
                    self.flush_ready()
                elif isinstance(item, _FlushRequest):
                    self._handle_flush_request(item)
                elif isinstance(item, _Submission):
                    self._handle_submission(item)
                else:
                    self.accept(item)

            except Exception:
                self._total_loop_errors += 1
                logger.exception("Error in worker loop")

        self._drain()

    def _handle_flush_request(self, request: _FlushRequest) -> None:
        self._total_flush_requests += 1
        try:
            self.flush_ready(force=True)
        finally:
            request.done.set()

    def _handle_submission(self, submission: _Submission) -> None:
        try:
            submission.results = self.accept(submission.entry)
        except Exception as e:
            submission.error = e
            raise
        finally:
            submission.done.set()

    def _drain(self) -> None:
        """Deliver everything still buffered, then stop."""
        with self._state_lock:
            self._state = WorkerState.DRAINING

        pending = self.buffer.size()
        logger.info(f"Draining worker, {pending} records buffered")

        try:
            results = self.flush_ready(force=True)
        except Exception:
            results = []
            logger.exception("Error while draining buffer")

        # Wake any flush requests that arrived after end of stream
        while (item := self.intake_queue.take(timeout=0)) is not None:
            if isinstance(item, _FlushRequest):
                item.done.set()

        with self._state_lock:
            self._state = WorkerState.STOPPED

        failed = sum(1 for result in results if not result.success)
        logger.info(f"Stopped async worker. Stats - Entries: {self._total_entries_processed}, Drain batches: {len(results)}, Drain failures: {failed}")
