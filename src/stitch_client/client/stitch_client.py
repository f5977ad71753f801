"""Client facade for sending records to Stitch.

This module wires the pipeline together and exposes the submission surface:

Records → (push: buffer on the caller's thread)
        → (offer/put: Intake Queue → Async Worker → buffer)
        → Batch → Delivery Pipeline → Transport → callbacks

It owns the lifecycle: the worker thread starts on `start()`, on the first
`offer`/`put`, or when the client is used as a context manager, and `close()`
drains everything before returning.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from loguru import logger

from ..buffer import BatchBuffer
from ..config import ClientConfig
from ..core.entry import Batch, Entry, now_millis
from ..core.errors import BatchTooLargeError, ClientClosedError, DeliveryError, EntryTooLargeError
from ..queuer import IntakeQueue
from ..sender import BatchCallback, DeliveryPipeline, DeliveryResult, FlushCallback, HTTPTransport, JsonSerializer, ResponseHandler, Serializer, Transport, as_batch_callback, flush_handler_callback
from ..worker import AsyncWorker


class StitchClient:
    """Batches records and delivers them through a transport."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        config: Optional[ClientConfig] = None,
        serializer: Optional[Serializer] = None,
        callback: Union[BatchCallback, ResponseHandler, None] = None,
        flush_handler: Optional[FlushCallback] = None,
        clock: Callable[[], int] = now_millis,
    ):
        """Initialize the client.

        Args:
            transport: Delivery collaborator (HTTP transport built from config by default)
            config: Client configuration
            serializer: Record encoder (compact JSON by default)
            callback: Called once per flushed batch with (entries, result),
                or a ResponseHandler with handle_ok/handle_error
            flush_handler: Called with the callback args of each successfully
                flushed batch
            clock: Millisecond clock used to age buffered records

        Raises:
            ValueError: if the configuration is invalid
        """
        self.config = config or ClientConfig()
        is_valid, errors = self.config.validate()
        if not is_valid:
            raise ValueError(f"Invalid client configuration: {'; '.join(errors)}")

        self.serializer = serializer or JsonSerializer()
        self.transport = transport or HTTPTransport(self.config.get_transport_config())
        self._clock = clock

        callbacks: List[BatchCallback] = []
        if batch_callback := as_batch_callback(callback):
            callbacks.append(batch_callback)
        if flush_handler is not None:
            callbacks.append(flush_handler_callback(flush_handler))

        self._init_components(callbacks)

        self._closed = False
        self._lifecycle_lock = threading.Lock()

    def _init_components(self, callbacks: List[BatchCallback]) -> None:
        """Initialize all pipeline components."""
        self.buffer = BatchBuffer(
            max_batch_size_bytes=self.config.max_batch_size_bytes,
            max_messages_per_batch=self.config.max_messages_per_batch,
            clock=self._clock,
        )
        self.pipeline = DeliveryPipeline(transport=self.transport, serializer=self.serializer, callbacks=callbacks)
        self.queue = IntakeQueue(self.config.get_queue_config())
        self.worker = AsyncWorker(buffer=self.buffer, pipeline=self.pipeline, intake_queue=self.queue, config=self.config.get_worker_config())

        logger.debug(
            f"Initialized stitch client - batch threshold: {self.config.batch_size_bytes} bytes, "
            f"max messages: {self.config.max_messages_per_batch}, delay: {self.config.batch_delay_millis}ms, "
            f"intake capacity: {self.config.intake_queue_capacity}"
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the async worker thread."""
        with self._lifecycle_lock:
            self._check_open()
            self.worker.start()

    def push(self, record: Any, callback_arg: Any = None) -> None:
        """Buffer a record, flushing if the buffer is ready.

        Returns without waiting for the network unless this record makes the
        buffer ready, in which case the call blocks until that delivery
        completes. With the worker running the record is handed over through
        the intake queue, after any record this thread offered or put before.

        Raises:
            EntryTooLargeError: if the record can never fit in a batch
            ClientClosedError: if the client is closed
            DeliveryError: if the delivery this call triggered failed
        """
        entry = self._to_entry(record, callback_arg)
        self.worker.submit(entry)
        if self._closed:
            # close() may have drained before this entry landed
            self.worker.flush_ready(force=True, raise_on_failure=True)

    def offer(self, record: Any, callback_arg: Any = None, timeout: Optional[float] = None) -> bool:
        """Submit a record to the intake queue without blocking indefinitely.

        Args:
            record: Record to send
            callback_arg: Token passed back to callbacks for this record
            timeout: Seconds to wait for queue space. None does not wait.

        Returns:
            True if queued, False if the queue was full
        """
        entry = self._to_entry(record, callback_arg)
        self._ensure_worker()
        accepted = self.queue.offer(entry, timeout=timeout)
        if not accepted:
            logger.warning("Intake queue full, record not accepted")
        return accepted

    def put(self, record: Any, callback_arg: Any = None) -> None:
        """Submit a record to the intake queue, waiting for space."""
        entry = self._to_entry(record, callback_arg)
        if self.worker.in_delivery():
            # The worker cannot make room while it waits on this call
            self.worker.accept(entry)
            return
        self._ensure_worker()
        self.queue.put(entry)

    def push_batch(self, records: Sequence[Any], callback_args: Optional[Sequence[Any]] = None) -> DeliveryResult:
        """Deliver records as one batch immediately, bypassing the buffer.

        Raises:
            BatchTooLargeError: if the encoded batch exceeds the batch ceiling
            DeliveryError: if delivery failed
        """
        if not records:
            raise ValueError("Cannot push an empty batch")
        if callback_args is not None and len(callback_args) != len(records):
            raise ValueError("callback_args must match records one to one")

        args = list(callback_args) if callback_args is not None else [None] * len(records)
        entries = [self._to_entry(record, arg) for record, arg in zip(records, args)]
        body_size = len(self.serializer.encode_batch([entry.data for entry in entries]))
        if body_size > self.config.max_batch_size_bytes:
            raise BatchTooLargeError(body_size, self.config.max_batch_size_bytes)

        result = self.worker.deliver_batch(Batch(entries=entries, serialized_size=body_size))
        if not result.success:
            raise DeliveryError(result) from result.error
        return result

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Deliver everything submitted so far.

        With the worker running the request is queued behind earlier
        submissions and failures go to the callbacks. Without a worker the
        buffer is drained on the calling thread.

        Returns:
            False if the timeout elapsed before the worker finished

        Raises:
            DeliveryError: on failure when draining on the calling thread
        """
        if self._closed:
            return True
        if self.worker.running:
            return self.worker.request_flush(timeout)
        self.worker.flush_ready(force=True, raise_on_failure=True)
        return True

    def close(self) -> None:
        """Stop accepting records, deliver everything buffered and stop the worker."""
        with self._lifecycle_lock:
            if self._closed:
                return
            self._closed = True

        logger.info("Closing stitch client...")

        # Worker drains the intake queue and the buffer before exiting
        self.worker.stop()

        # Records pushed on caller threads while no worker was running
        leftover = self.worker.flush_ready(force=True)
        if leftover:
            logger.info(f"Flushed {len(leftover)} remaining batches on close")

        self._log_final_stats()

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics.

        Returns:
            Dictionary with statistics for every pipeline component
        """
        return {
            "client": {"closed": self._closed},
            "buffer": self.buffer.get_stats(),
            "queue": self.queue.get_stats(),
            "worker": self.worker.get_stats(),
            "delivery": self.pipeline.get_stats(),
        }

    def __enter__(self) -> "StitchClient":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _to_entry(self, record: Any, callback_arg: Any) -> Entry:
        self._check_open()
        data = self.serializer.encode_record(record)
        if len(data) > self.config.max_entry_bytes:
            logger.warning(f"Rejecting record of {len(data)} bytes, limit is {self.config.max_entry_bytes}")
            raise EntryTooLargeError(len(data), self.config.max_entry_bytes)
        return Entry(data=data, enqueued_at_millis=self._clock(), callback_arg=callback_arg)

    def _ensure_worker(self) -> None:
        if self.worker.running:
            return
        with self._lifecycle_lock:
            self._check_open()
            if not self.worker.running:
                self.worker.start()

    def _check_open(self) -> None:
        if self._closed:
            raise ClientClosedError("Client is closed, cannot accept new records")

    def _log_final_stats(self) -> None:
        stats = self.get_stats()
        logger.info(
            f"Stitch client closed. Stats - Batches sent: {stats['delivery']['total_batches_sent']}, "
            f"failed: {stats['delivery']['total_batches_failed']}, "
            f"records sent: {stats['delivery']['total_records_sent']}"
        )


def create_default_client(
    token: str,
    push_url: Optional[str] = None,
    callback: Union[BatchCallback, ResponseHandler, None] = None,
    **overrides: Any,
) -> StitchClient:
    """Create a stitch client posting over HTTP with default configuration.

    Args:
        token: API token
        push_url: Optional push endpoint override
        callback: Optional batch completion callback
        **overrides: Any other ClientConfig field

    Returns:
        Configured stitch client
    """
    config = ClientConfig(token=token, **overrides)
    if push_url:
        config.push_url = push_url

    return StitchClient(config=config, callback=callback)
