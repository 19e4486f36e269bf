from __future__ import annotations

from typing import Any


class SupportError(RuntimeError):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(SupportError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(SupportError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found", details={"kind": kind, "id": entity_id})
        self.kind = kind
        self.entity_id = entity_id


class CapacityExhausted(SupportError):
    status_code = 409
    code = "CAPACITY_EXHAUSTED"


class UpstreamError(SupportError):
    status_code = 502
    code = "EXTERNAL_API_ERROR"


class UpstreamFormatError(UpstreamError):
    """Malformed analysis payload. The normalizer degrades to empty fields instead of raising this."""
