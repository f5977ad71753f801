"""Response and result models for batch delivery."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class TransportResponse(BaseModel):
    """Status and body returned by a transport for one batch."""

    model_config = ConfigDict(frozen=True)

    status_code: int = Field(..., ge=0, description="HTTP status code")
    reason_phrase: str = Field(default="", description="HTTP reason phrase")
    content: Dict[str, Any] = Field(default_factory=dict, description="Decoded JSON response body")

    @property
    def is_ok(self) -> bool:
        return self.status_code < 300

    @property
    def error_message(self) -> str:
        """Diagnostic text extracted from the response body."""
        for key in ("error", "message"):
            value = self.content.get(key)
            if isinstance(value, str) and value:
                return value
        return self.reason_phrase

    def __str__(self) -> str:
        return f"HTTP {self.status_code} ({self.reason_phrase}): {self.error_message}"


@dataclass
class DeliveryResult:
    """Outcome of delivering one batch, produced once per transport call."""

    success: bool
    batch_id: str = ""
    response: Optional[TransportResponse] = None
    error: Optional[BaseException] = None
    record_count: int = 0
    elapsed_seconds: float = 0.0

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response else None

    @property
    def error_message(self) -> str:
        if self.success:
            return ""
        if self.response is not None and not self.response.is_ok:
            return str(self.response)
        if self.error is not None:
            return f"{type(self.error).__name__}: {self.error}"
        return "unknown delivery failure"
