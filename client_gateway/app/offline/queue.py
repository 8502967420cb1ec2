"""
FIFO buffer for requests issued while the network is unavailable.
"""

import asyncio
import inspect
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Optional

from shared.errors import ErrorKind, GatewayError
from shared.logging import get_logger
from ..models import RequestDescriptor


BACKGROUND_SYNC_TAG = "sync-api-calls"

Dispatcher = Callable[[RequestDescriptor], Awaitable[Any]]


class QueueState(str, Enum):
    """Offline queue states."""
    ARMED = "armed"
    QUEUING = "queuing"
    DRAINING = "draining"


@dataclass
class PendingRequest:
    """A queued request and the future its caller is awaiting."""
    request: RequestDescriptor
    future: asyncio.Future


class OfflineQueue:
    """Queues requests while offline and replays them in arrival order.

    ARMED dispatches immediately. The first request made while offline moves
    the queue to QUEUING; every request made in QUEUING or DRAINING is
    appended to the tail so it cannot overtake older entries. ``drain`` runs
    on the connectivity-restored signal and returns to ARMED once empty.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        is_online: Callable[[], bool],
        *,
        background_sync: Optional[Callable[[str], Any]] = None,
        on_depth_change: Optional[Callable[[int], None]] = None,
    ):
        self.dispatcher = dispatcher
        self.is_online = is_online
        self.background_sync = background_sync
        self.on_depth_change = on_depth_change
        self.logger = get_logger("gateway.offline_queue")

        self._state = QueueState.ARMED
        self._pending: Deque[PendingRequest] = deque()
        self._sync_task: Optional[asyncio.Future] = None

    @property
    def state(self) -> QueueState:
        return self._state

    def __len__(self) -> int:
        return len(self._pending)

    def should_queue(self, online: bool) -> bool:
        return not online or self._state is not QueueState.ARMED

    def enqueue(self, request: RequestDescriptor) -> asyncio.Future:
        """Append ``request`` and return the future settled on replay."""
        future = asyncio.get_running_loop().create_future()
        self._pending.append(PendingRequest(request=request, future=future))
        self._depth_changed()

        if self._state is QueueState.ARMED:
            self._state = QueueState.QUEUING
            self._register_background_sync()

        self.logger.info(
            "Queued request while offline",
            method=request.method,
            url=request.url,
            queued=len(self._pending),
        )
        return future

    async def drain(self):
        """Replay queued requests strictly in arrival order."""
        if self._state is QueueState.DRAINING:
            return
        if not self._pending:
            self._state = QueueState.ARMED
            return

        self._state = QueueState.DRAINING
        self.logger.info("Back online, processing queued requests", queued=len(self._pending))

        try:
            while self._pending:
                entry = self._pending[0]
                try:
                    result = await self.dispatcher(entry.request)
                except GatewayError as exc:
                    if exc.kind is ErrorKind.NETWORK_ERROR and not self.is_online():
                        self._state = QueueState.QUEUING
                        self.logger.warning("Connectivity lost while draining", queued=len(self._pending))
                        return
                    self._reject(exc)
                except Exception as exc:
                    self.logger.error("Queued request failed", url=entry.request.url, error=str(exc))
                    self._reject(exc)
                else:
                    self._pending.popleft()
                    if not entry.future.done():
                        entry.future.set_result(result)
                self._depth_changed()
        finally:
            if self._state is QueueState.DRAINING:
                self._state = QueueState.QUEUING if self._pending else QueueState.ARMED

    def _reject(self, exc: BaseException):
        entry = self._pending.popleft()
        if not entry.future.done():
            entry.future.set_exception(exc)

    def _depth_changed(self):
        if self.on_depth_change:
            self.on_depth_change(len(self._pending))

    def _register_background_sync(self):
        if self.background_sync is None:
            return
        result = self.background_sync(BACKGROUND_SYNC_TAG)
        if inspect.isawaitable(result):
            self._sync_task = asyncio.ensure_future(result)
            self._sync_task.add_done_callback(self._on_sync_done)

    def _on_sync_done(self, task: asyncio.Future):
        if task is self._sync_task:
            self._sync_task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Background sync registration failed", tag=BACKGROUND_SYNC_TAG, error=str(exc))
