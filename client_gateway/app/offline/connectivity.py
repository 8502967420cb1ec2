"""
Network connectivity tracking.
"""

import asyncio
import inspect
from typing import Any, Callable, List, Optional

import httpx

from shared.logging import get_logger


ConnectivityListener = Callable[[bool], Any]


class ConnectivityMonitor:
    """Holds the online flag and notifies listeners on transitions.

    The flag is driven by the host environment through ``set_online`` or by
    the optional ping loop started with ``start``.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: List[ConnectivityListener] = []
        self._probe_task: Optional[asyncio.Task] = None
        self.logger = get_logger("gateway.connectivity")

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener):
        self._listeners.append(listener)

    async def set_online(self, online: bool):
        """Update the flag; listeners run only when it actually changes."""
        if online == self._online:
            return
        self._online = online
        self.logger.info("Connectivity changed", online=online)

        for listener in list(self._listeners):
            result = listener(online)
            if inspect.isawaitable(result):
                await result

    async def probe(self, client: httpx.AsyncClient, url: str, timeout: float = 5.0) -> bool:
        """Ping ``url`` and update the flag; any response counts as online."""
        try:
            await client.head(url, timeout=timeout)
        except httpx.TransportError as exc:
            self.logger.debug("Connectivity probe failed", url=url, error=str(exc))
            online = False
        else:
            online = True
        await self.set_online(online)
        return online

    def start(self, client: httpx.AsyncClient, url: str, *, interval: float = 30.0, timeout: float = 5.0):
        """Probe periodically in a background task."""
        if self._probe_task is not None and not self._probe_task.done():
            return

        async def _loop():
            while True:
                await self.probe(client, url, timeout)
                await asyncio.sleep(interval)

        self._probe_task = asyncio.create_task(_loop())

    async def stop(self):
        if self._probe_task is None:
            return
        self._probe_task.cancel()
        try:
            await self._probe_task
        except asyncio.CancelledError:
            pass
        self._probe_task = None
