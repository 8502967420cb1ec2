"""
Request and credential models for the client gateway.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlencode


READ_METHODS = {"GET"}


@dataclass
class RequestDescriptor:
    """An outgoing request as issued by a service module.

    ``metadata`` and ``retried`` belong to the gateway: the annotator fills
    ``metadata`` and the refresh path sets ``retried`` so a request is
    replayed after a token refresh at most once.
    """
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Any] = None
    params: Optional[Dict[str, Any]] = None
    files: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    queue_if_offline: bool = True
    cache: bool = True
    timeout: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    retried: bool = False

    def __post_init__(self):
        self.method = self.method.upper()

    @property
    def is_read(self) -> bool:
        return self.method in READ_METHODS

    @property
    def cache_key(self) -> str:
        """Endpoint key used by the response cache."""
        if not self.params:
            return self.url
        query = urlencode(sorted((k, v) for k, v in self.params.items() if v is not None), doseq=True)
        return f"{self.url}?{query}" if query else self.url


@dataclass(frozen=True)
class TokenPair:
    """Credentials returned by the refresh endpoint."""
    token: str
    refresh_token: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenPair":
        """Parse ``{"data": {"token": ..., "refreshToken": ...}}`` or the same fields unwrapped."""
        if not isinstance(payload, dict):
            raise ValueError("Refresh response was not a JSON object")
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        if not data.get("token"):
            raise ValueError("Refresh response did not contain a token")
        return cls(token=data["token"], refresh_token=data.get("refreshToken"))
