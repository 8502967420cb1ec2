"""
Maps transport failures and HTTP error statuses onto GatewayError.
"""

import json
from typing import Any, Dict, Optional

import httpx

from shared.errors import ErrorKind, GatewayError


NETWORK_ERROR_MESSAGE = "Network error. Please check your connection."
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."
FORBIDDEN_MESSAGE = "You do not have permission to perform this action."
NOT_FOUND_MESSAGE = "The requested resource was not found."
VALIDATION_MESSAGE = "Validation failed"
SERVER_ERROR_MESSAGE = "Server error. Please try again later."
DEFAULT_RETRY_AFTER = 60


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {"message": response.text}


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return max(0, int(float(value)))
    except (ValueError, OverflowError):
        return None


class ErrorNormalizer:
    """Builds the single structured error every failed request rejects with."""

    def network_error(self, exc: Optional[BaseException] = None) -> GatewayError:
        details: Dict[str, Any] = {}
        if exc is not None:
            details = {"type": type(exc).__name__, "error": str(exc)}
        return GatewayError(ErrorKind.NETWORK_ERROR, NETWORK_ERROR_MESSAGE, details=details)

    def from_response(self, response: httpx.Response) -> GatewayError:
        status = response.status_code
        body = _parse_body(response)
        payload = body if isinstance(body, dict) else {}

        if status == 401:
            return GatewayError(ErrorKind.UNAUTHORIZED, SESSION_EXPIRED_MESSAGE, status_code=status)

        if status == 403:
            return GatewayError(ErrorKind.FORBIDDEN, FORBIDDEN_MESSAGE, status_code=status)

        if status == 404:
            return GatewayError(ErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE, status_code=status)

        if status == 422:
            errors = payload.get("errors") or {}
            return GatewayError(
                ErrorKind.VALIDATION_ERROR,
                VALIDATION_MESSAGE,
                status_code=status,
                errors=errors,
            )

        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("retry-after"))
            wait = retry_after if retry_after is not None else DEFAULT_RETRY_AFTER
            return GatewayError(
                ErrorKind.RATE_LIMITED,
                f"Too many requests. Please try again in {wait} seconds.",
                status_code=status,
                retry_after=retry_after,
            )

        if status >= 500:
            return GatewayError(ErrorKind.SERVER_ERROR, SERVER_ERROR_MESSAGE, status_code=status)

        message = payload.get("message") or payload.get("error") or response.reason_phrase or "Request failed"
        return GatewayError(
            ErrorKind.HTTP_ERROR,
            str(message),
            status_code=status,
            details=payload,
        )
