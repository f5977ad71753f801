"""Pytest fixtures for stitch client tests."""

import json
import threading

import pytest

from stitch_client.sender import JsonSerializer, TransportResponse


class StubTransport:
    """Records every delivered body and answers with a configurable status."""

    def __init__(self):
        self.bodies = []
        self.content_types = []
        self.status_code = 200
        self.reason_phrase = "OK"
        self.content = {"status": "OK", "message": "Batch accepted"}
        self.raise_error = None
        self.delivered = threading.Event()
        self._lock = threading.Lock()

    def deliver(self, body, content_type):
        with self._lock:
            self.bodies.append(body)
            self.content_types.append(content_type)
        self.delivered.set()

        if self.raise_error is not None:
            raise self.raise_error
        return TransportResponse(status_code=self.status_code, reason_phrase=self.reason_phrase, content=self.content)

    def records(self):
        """All delivered records, decoded, in delivery order."""
        return [record for body in self.bodies for record in json.loads(body)]

    def batch_sizes(self):
        return [len(json.loads(body)) for body in self.bodies]


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, millis):
        self.now += millis


@pytest.fixture
def transport():
    """Create a stub transport that accepts every batch."""
    return StubTransport()


@pytest.fixture
def clock():
    """Create a fake millisecond clock."""
    return FakeClock()


@pytest.fixture
def serializer():
    return JsonSerializer()
