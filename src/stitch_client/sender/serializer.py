"""Record and batch encoding.

The encoding must be byte-stable: the size of an entry measured while
buffering is the size it occupies in the delivered batch body.
"""

from __future__ import annotations

import json
from typing import Any, Protocol, Sequence



class Serializer(Protocol):
    """Encodes records and assembles batch bodies."""

    content_type: str

    def encode_record(self, record: Any) -> bytes: ...

    def encode_batch(self, records: Sequence[bytes]) -> bytes: ...


class JsonSerializer:
    """Compact, key-sorted JSON records wrapped in a JSON array."""

    content_type = "application/json"

    def encode_record(self, record: Any) -> bytes:
        return json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")

    def encode_batch(self, records: Sequence[bytes]) -> bytes:
        return b"[" + b",".join(records) + b"]"
