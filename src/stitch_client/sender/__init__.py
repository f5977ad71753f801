"""Batch delivery module: encoding, transport and completion callbacks."""

from .callbacks import BatchCallback, FlushCallback, ResponseHandler, as_batch_callback, flush_handler_callback, response_handler_callback
from .delivery import DeliveryPipeline
from .http_transport import DEFAULT_PUSH_URL, HTTPTransport, Transport, TransportConfig, create_default_transport
from .models import DeliveryResult, TransportResponse
from .serializer import JsonSerializer, Serializer

__all__ = [
    # Delivery
    "DeliveryPipeline",
    "DeliveryResult",
    # Transport
    "Transport",
    "TransportConfig",
    "TransportResponse",
    "HTTPTransport",
    "create_default_transport",
    "DEFAULT_PUSH_URL",
    # Encoding
    "Serializer",
    "JsonSerializer",
    # Callbacks
    "BatchCallback",
    "FlushCallback",
    "ResponseHandler",
    "as_batch_callback",
    "flush_handler_callback",
    "response_handler_callback",
]
