"""HTTP transport for posting batch bodies to the Stitch push API.

This module provides the HTTPS transport used by the delivery pipeline. It
performs exactly one request per batch: no retries, no backoff. Non-success
HTTP statuses come back as a TransportResponse so the pipeline can classify
them; network errors propagate as exceptions.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Protocol
from urllib.error import HTTPError
from urllib.request import Request, urlopen

from loguru import logger

from .models import TransportResponse

DEFAULT_PUSH_URL = "https://api.stitchdata.com/v2/import/push"


class Transport(Protocol):
    """Delivers one encoded batch body and reports the response."""

    def deliver(self, body: bytes, content_type: str) -> TransportResponse: ...


@dataclass
class TransportConfig:
    """Configuration for the HTTP transport."""

    push_url: str = DEFAULT_PUSH_URL
    token: str = ""  # Bearer token for the Authorization header
    timeout_seconds: float = 120.0
    user_agent: str = "stitch-client-python"


class HTTPTransport:
    """Posts batch bodies over HTTP(S)."""

    def __init__(self, config: TransportConfig = TransportConfig()):
        """Initialize the HTTP transport.

        Args:
            config: Transport configuration
        """
        self.config = config

    def deliver(self, body: bytes, content_type: str) -> TransportResponse:
        """POST a batch body and return the decoded response.

        Args:
            body: Encoded batch body
            content_type: Content-Type of the body

        Returns:
            Response with status, reason and decoded JSON content

        Raises:
            URLError: on network failure
        """
        req = Request(
            self.config.push_url,
            data=body,
            method="POST",
            headers={
                "Content-Type": content_type,
                "Authorization": f"Bearer {self.config.token}",
                "User-Agent": self.config.user_agent,
            },
        )

        try:
            with urlopen(req, timeout=self.config.timeout_seconds) as response:
                payload = response.read()
                logger.debug(f"Push response: {response.status}")
                return TransportResponse(status_code=response.status, reason_phrase=response.reason or "", content=_decode_content(payload))

        except HTTPError as e:
            # Non-2xx statuses are results, not transport failures
            payload = e.read() if e.fp is not None else b""
            if e.code == 401:
                logger.warning("Push API rejected the token (401)")
            return TransportResponse(status_code=e.code, reason_phrase=str(e.reason or ""), content=_decode_content(payload))


def _decode_content(payload: bytes) -> Dict[str, Any]:
    """Decode a JSON object body, tolerating empty or non-JSON bodies."""
    if not payload:
        return {}
    try:
        content = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {"message": payload.decode("utf-8", errors="replace")}
    return content if isinstance(content, dict) else {"message": str(content)}


def create_default_transport(token: str, push_url: str = DEFAULT_PUSH_URL) -> HTTPTransport:
    """Create an HTTP transport with default configuration.

    Args:
        token: API token sent as a Bearer credential
        push_url: Push endpoint URL

    Returns:
        Configured HTTP transport
    """
    return HTTPTransport(TransportConfig(push_url=push_url, token=token))
