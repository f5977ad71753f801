"""Delivery pipeline for transmitting assembled batches.

This module turns a Batch into a request body, hands it to the injected
transport, classifies the outcome and dispatches completion callbacks.
It never retries: a failed batch is reported once and retry policy belongs
to the application. Callback exceptions are logged and swallowed so a
misbehaving handler cannot kill the worker thread.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from ..core.entry import Batch
from ..core.errors import DeliveryError
from .callbacks import BatchCallback
from .http_transport import Transport
from .models import DeliveryResult
from .serializer import JsonSerializer, Serializer


class DeliveryPipeline:
    """Sends batches through a transport and reports their outcome."""

    def __init__(
        self,
        transport: Transport,
        serializer: Optional[Serializer] = None,
        callbacks: Optional[List[BatchCallback]] = None,
    ):
        """Initialize the delivery pipeline.

        Args:
            transport: Collaborator that performs the network call
            serializer: Batch body encoder (JSON array by default)
            callbacks: Handlers invoked once per delivered batch
        """
        self.transport = transport
        self.serializer = serializer or JsonSerializer()
        self.callbacks: List[BatchCallback] = list(callbacks or [])

        # Statistics
        self._total_batches_sent = 0
        self._total_batches_failed = 0
        self._total_records_sent = 0
        self._total_callback_errors = 0
        self._total_send_time = 0.0
        self._last_successful_send: Optional[datetime] = None
        self._last_error: Optional[str] = None

    def deliver(self, batch: Batch) -> DeliveryResult:
        """Send a batch and dispatch its callbacks."""
        result = self.send_batch(batch)
        self.dispatch(batch, result)
        return result

    def send_batch(self, batch: Batch) -> DeliveryResult:
        """Send a batch through the transport.

        Args:
            batch: Batch to send

        Returns:
            The classified outcome. Transport exceptions are captured in the
            result rather than raised.
        """
        return self.send_records(batch.raw_records(), batch_id=batch.batch_id)

    def send_records(self, records: List[bytes], batch_id: str = "") -> DeliveryResult:
        """Encode already-serialized records as one body and send it."""
        start_time = time.time()
        body = self.serializer.encode_batch(records)

        try:
            response = self.transport.deliver(body, self.serializer.content_type)
        except Exception as e:
            result = DeliveryResult(success=False, batch_id=batch_id, error=e, record_count=len(records))
        else:
            result = DeliveryResult(success=response.is_ok, batch_id=batch_id, response=response, record_count=len(records))
            if not response.is_ok:
                result.error = DeliveryError(result)

        result.elapsed_seconds = time.time() - start_time
        self._total_send_time += result.elapsed_seconds

        if result.success:
            self._total_batches_sent += 1
            self._total_records_sent += len(records)
            self._last_successful_send = datetime.now()
            self._last_error = None
            logger.debug(f"Sent batch {batch_id} with {len(records)} records ({len(body)} bytes) in {result.elapsed_seconds:.2f}s")
        else:
            self._total_batches_failed += 1
            self._last_error = result.error_message
            logger.error(f"Failed to send batch {batch_id} with {len(records)} records: {result.error_message}")

        return result

    def dispatch(self, batch: Batch, result: DeliveryResult) -> None:
        """Invoke every registered callback once for this batch."""
        for callback in self.callbacks:
            try:
                callback(batch.entries, result)
            except Exception:
                self._total_callback_errors += 1
                logger.exception(f"Callback raised while handling batch {batch.batch_id}")

    def get_stats(self) -> Dict[str, Any]:
        """Get delivery statistics.

        Returns:
            Dictionary with delivery statistics
        """
        attempts = self._total_batches_sent + self._total_batches_failed

        return {
            "total_batches_sent": self._total_batches_sent,
            "total_batches_failed": self._total_batches_failed,
            "total_records_sent": self._total_records_sent,
            "total_callback_errors": self._total_callback_errors,
            "success_rate": self._total_batches_sent / max(1, attempts),
            "average_send_time_seconds": self._total_send_time / max(1, attempts),
            "last_successful_send": self._last_successful_send.isoformat() if self._last_successful_send else None,
            "last_error": self._last_error,
        }
