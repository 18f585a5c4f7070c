"""
Shared error handling for the console data-sync layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class SyncLayerException(Exception):
    """Base exception for the data-sync layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class TransportError(SyncLayerException):
    """The request never produced a response (unreachable host, timeout)."""

    def __init__(self, message: str = "Network request failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, details)


class MalformedResponseError(SyncLayerException):
    """The response body is not a usable JSON envelope."""

    def __init__(self, message: str = "Invalid JSON response from server", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_RESPONSE", message, details)


class ServerError(SyncLayerException):
    """Server-declared failure: HTTP non-2xx or an envelope with success=false.

    ``code`` is the server's own error code (as text) when it sent one,
    otherwise ``HTTP_<status>``. ``errors`` and ``timestamp`` are surfaced
    verbatim, whatever their shape.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        code: Any = None,
        errors: Any = None,
        timestamp: Any = None,
    ):
        self.status_code = status_code
        self.errors = errors
        self.timestamp = timestamp
        super().__init__(
            str(code) if code not in (None, "") else f"HTTP_{status_code}",
            message,
            {"status_code": status_code, "errors": errors, "timestamp": timestamp}
        )


class CacheStorageError(SyncLayerException):
    """Session storage failures. Never surfaced to consumers."""

    def __init__(self, message: str = "Cache storage error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_STORAGE_ERROR", message, details)


class StorageQuotaExceeded(CacheStorageError):
    """Session storage refused a write because it is full."""

    def __init__(self, message: str = "Storage quota exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "STORAGE_QUOTA_EXCEEDED"
