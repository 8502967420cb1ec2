"""
Realtime event channel over WebSockets.

Frames are JSON objects ``{"event": <name>, "data": <payload>}`` in both
directions. Events emitted while disconnected are held and flushed, in
order, after the next successful connect.
"""

import asyncio
import inspect
import json
from collections import defaultdict
from typing import Any, Callable, DefaultDict, Dict, List, Optional
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from shared.errors import ErrorKind, GatewayError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception
from ..auth.credentials import CredentialStore
from ..domain.error_normalizer import NETWORK_ERROR_MESSAGE

EventHandler = Callable[[Any], Any]

CONNECT_EXCEPTIONS = (OSError, asyncio.TimeoutError, WebSocketException)


def _reconnect_policy(channel: "RealtimeChannel", *args, **kwargs) -> RetryConfig:
    return RetryConfig(
        max_attempts=channel.reconnect_attempts,
        base_delay=channel.reconnect_delay,
        max_delay=10.0,
        jitter=True,
    )


class RealtimeChannel:
    """Authenticated WebSocket connection with named-event dispatch."""

    def __init__(
        self,
        url: str,
        credentials: CredentialStore,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        *,
        device_type: str = "desktop",
    ):
        self.url = url
        self.credentials = credentials
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.device_type = device_type
        self.logger = get_logger("gateway.realtime")

        self._ws = None
        self._handlers: DefaultDict[str, List[EventHandler]] = defaultdict(list)
        self._outbox: List[Dict[str, Any]] = []

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self):
        """Open the channel with the stored token.

        Raises:
            GatewayError: UNAUTHORIZED without a stored token, NETWORK_ERROR
                once every reconnect attempt failed.
        """
        if self._ws is not None:
            return

        token = await self.credentials.access_token()
        if not token:
            raise GatewayError(ErrorKind.UNAUTHORIZED, "No auth token available", status_code=401)

        query = {"token": token, "device_type": self.device_type}
        role = await self.credentials.role()
        if role:
            query["user_role"] = role

        try:
            self._ws = await self._open(f"{self.url}?{urlencode(query)}")
        except RetryError as e:
            raise GatewayError(
                ErrorKind.NETWORK_ERROR,
                NETWORK_ERROR_MESSAGE,
                details={"attempts": e.attempts, "error": str(e.last_exception)},
            ) from e

        self.logger.info("Realtime channel connected", url=self.url)
        await self._flush_outbox()

    @retry_on_exception(CONNECT_EXCEPTIONS, config_factory=_reconnect_policy)
    async def _open(self, uri: str):
        return await websockets.connect(uri)

    def on(self, event: str, handler: EventHandler):
        self._handlers[event].append(handler)

    def off(self, event: str, handler: Optional[EventHandler] = None):
        if handler is None:
            self._handlers.pop(event, None)
        elif handler in self._handlers.get(event, []):
            self._handlers[event].remove(handler)

    async def emit(self, event: str, data: Any = None):
        frame = {"event": event, "data": data}
        if self._ws is None:
            self._outbox.append(frame)
            self.logger.debug("Holding event until connected", event_name=event, held=len(self._outbox))
            return
        await self._ws.send(json.dumps(frame))

    async def listen(self):
        """Dispatch incoming frames to handlers until the connection closes."""
        if self._ws is None:
            raise GatewayError(ErrorKind.NETWORK_ERROR, NETWORK_ERROR_MESSAGE, details={"reason": "not_connected"})

        try:
            async for message in self._ws:
                await self._dispatch(message)
        except ConnectionClosed:
            self.logger.info("Realtime channel closed by server")
        finally:
            self._ws = None

    async def _dispatch(self, message: Any):
        try:
            frame = json.loads(message)
        except (TypeError, ValueError):
            self.logger.warning("Dropping non-JSON frame")
            return
        if not isinstance(frame, dict) or "event" not in frame:
            self.logger.warning("Dropping frame without event name")
            return

        for handler in list(self._handlers.get(frame["event"], [])):
            result = handler(frame.get("data"))
            if inspect.isawaitable(result):
                await result

    async def _flush_outbox(self):
        pending, self._outbox = self._outbox, []
        for frame in pending:
            await self._ws.send(json.dumps(frame))

    async def close(self):
        if self._ws is None:
            return
        ws, self._ws = self._ws, None
        await ws.close()
        self.logger.info("Realtime channel disconnected")
