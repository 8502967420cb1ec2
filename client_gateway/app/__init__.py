"""
Client gateway application package.
"""

from .gateway import Gateway
from .main import create_gateway, create_realtime_channel

__all__ = [
    "Gateway",
    "create_gateway",
    "create_realtime_channel",
]
