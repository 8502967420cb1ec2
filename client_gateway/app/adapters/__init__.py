"""
Adapters package for the client gateway.

Thin per-domain wrappers over ``Gateway``. Each adapter owns:

- Endpoint paths and request shapes
- Light response shaping where callers expect it

Adapters catch nothing from the gateway; GatewayError reaches the caller.
"""

from .auth_client import AuthClient
from .connections_client import ConnectionsClient
from .notifications_client import NotificationsClient

__all__ = [
    "AuthClient",
    "ConnectionsClient",
    "NotificationsClient",
]
