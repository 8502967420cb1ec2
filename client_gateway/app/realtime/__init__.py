"""
Realtime package for the client gateway.

Holds the WebSocket event channel used for chat, notifications and live
updates alongside the request/response gateway.
"""

from .channel import RealtimeChannel

__all__ = [
    "RealtimeChannel",
]
