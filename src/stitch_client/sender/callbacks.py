"""Completion callbacks for delivered batches.

Every flushed batch is reported through one callback shape:
``callback(entries, result)``, where ``result.success`` tells the outcome.
Adapters turn the two older styles into that shape: a ResponseHandler with
separate ok/error methods, and an ``on_flush(callback_args)`` function that
only hears about successful batches.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Union

from ..core.entry import Entry
from ..core.errors import DeliveryError
from .models import DeliveryResult

BatchCallback = Callable[[List[Entry], DeliveryResult], None]
FlushCallback = Callable[[List[Any]], None]


class ResponseHandler(ABC):
    """Receives the outcome of each flushed batch."""

    @abstractmethod
    def handle_ok(self, entries: List[Entry], result: DeliveryResult) -> None:
        """Called after the batch was accepted."""

    @abstractmethod
    def handle_error(self, entries: List[Entry], error: BaseException) -> None:
        """Called after the batch failed; `error` is usually a DeliveryError."""


def response_handler_callback(handler: ResponseHandler) -> BatchCallback:
    """Adapt a ResponseHandler to the unified batch callback."""

    def callback(entries: List[Entry], result: DeliveryResult) -> None:
        if result.success:
            handler.handle_ok(entries, result)
        else:
            handler.handle_error(entries, result.error or DeliveryError(result))

    return callback


def flush_handler_callback(on_flush: FlushCallback) -> BatchCallback:
    """Adapt an on_flush(callback_args) function; fires on success only."""

    def callback(entries: List[Entry], result: DeliveryResult) -> None:
        if result.success:
            on_flush([entry.callback_arg for entry in entries])

    return callback


def as_batch_callback(callback: Union[BatchCallback, ResponseHandler, None]) -> Optional[BatchCallback]:
    if callback is None:
        return None
    if isinstance(callback, ResponseHandler):
        return response_handler_callback(callback)
    return callback
