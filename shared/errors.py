"""
Shared error handling for the Creator Platform client layer.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ClientLayerException(Exception):
    """Base exception for the client layer."""

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


class ErrorKind(str, Enum):
    """Closed set of error categories surfaced by the gateway."""
    NETWORK_ERROR = "NETWORK_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    HTTP_ERROR = "HTTP_ERROR"


class GatewayError(ClientLayerException):
    """Structured rejection returned to every gateway caller."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int = 0,
        details: Optional[Dict[str, Any]] = None,
        errors: Optional[Dict[str, Any]] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(kind.value, message, details)
        self.kind = kind
        self.status_code = status_code
        self.errors = errors
        self.retry_after = retry_after

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        if self.errors is not None:
            response.details = {**response.details, "errors": self.errors}
        if self.retry_after is not None:
            response.details = {**response.details, "retry_after": self.retry_after}
        return response

    def __repr__(self) -> str:
        return f"GatewayError(kind={self.kind.value}, status_code={self.status_code}, message={self.message!r})"


class StorageQuotaExceeded(ClientLayerException):
    """Raised by a key/value store when a write does not fit."""

    def __init__(self, message: str = "Storage quota exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORAGE_QUOTA_EXCEEDED", message, details)
