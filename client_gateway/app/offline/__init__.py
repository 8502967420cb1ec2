"""
Offline support for the client gateway.

ConnectivityMonitor tracks whether the network is reachable; OfflineQueue
buffers requests made while it is not and replays them FIFO on reconnect.
"""

from .connectivity import ConnectivityMonitor
from .queue import OfflineQueue, PendingRequest, QueueState

__all__ = [
    "ConnectivityMonitor",
    "OfflineQueue",
    "PendingRequest",
    "QueueState",
]
