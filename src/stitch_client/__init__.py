"""Stitch Client - Batching record pipeline with async delivery."""

from .client import StitchClient, create_default_client
from .config import ClientConfig, setup_logging
from .core import BatchTooLargeError, ClientClosedError, DeliveryError, Entry, EntryTooLargeError, StitchClientError
from .sender import DeliveryResult, HTTPTransport, ResponseHandler, TransportResponse

__version__ = "1.0.0"

__all__ = [
    "StitchClient",
    "create_default_client",
    "ClientConfig",
    "setup_logging",
    "Entry",
    "DeliveryResult",
    "TransportResponse",
    "HTTPTransport",
    "ResponseHandler",
    "StitchClientError",
    "EntryTooLargeError",
    "BatchTooLargeError",
    "ClientClosedError",
    "DeliveryError",
]
