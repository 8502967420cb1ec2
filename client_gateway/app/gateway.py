"""
HTTP client gateway shared by every service module.

Request pipeline::

    annotate -> (offline? enqueue) -> network call
        2xx          -> cache reads (best effort), return payload
        401, first   -> single-flight refresh, re-annotate, retry once
        no response  -> fresh cache entry, else offline enqueue, else NETWORK_ERROR
        other errors -> normalized GatewayError

Queued requests are replayed through the same annotate + execute path with
re-queueing disabled, so a replay can never jump behind newer entries.
"""

import time
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

import httpx

from shared.config import GatewayConfig
from shared.errors import GatewayError
from shared.logging import get_logger, set_request_id, set_user_role
from .annotation.annotator import RequestAnnotator
from .auth.credentials import CredentialStore
from .auth.refresh import AuthRefreshCoordinator, AuthState, LoginRedirector
from .caching.response_cache import CacheEntry, ResponseCache
from .domain.error_normalizer import ErrorNormalizer
from .models import RequestDescriptor, TokenPair
from .offline.connectivity import ConnectivityMonitor
from .offline.queue import OfflineQueue

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class Gateway:
    """Annotating, caching, offline-aware HTTP client with token refresh.

    Collaborators are injected so each instance owns its own queue, waiter
    list and cache; ``client_gateway.app.main.create_gateway`` builds the
    default object graph.
    """

    def __init__(
        self,
        config: GatewayConfig,
        client: httpx.AsyncClient,
        *,
        credentials: CredentialStore,
        annotator: RequestAnnotator,
        cache: ResponseCache,
        connectivity: ConnectivityMonitor,
        coordinator: Optional[AuthRefreshCoordinator] = None,
        offline_queue: Optional[OfflineQueue] = None,
        normalizer: Optional[ErrorNormalizer] = None,
        redirector: Optional[LoginRedirector] = None,
        background_sync: Optional[Callable[[str], Any]] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config
        self.client = client
        self.credentials = credentials
        self.annotator = annotator
        self.cache = cache
        self.connectivity = connectivity
        self.normalizer = normalizer or ErrorNormalizer()
        self.metrics = metrics
        self.logger = get_logger("gateway.client")

        self.coordinator = coordinator or AuthRefreshCoordinator(
            credentials, self._call_refresh_endpoint, redirector, metrics=metrics
        )
        self.offline_queue = offline_queue or OfflineQueue(
            self._replay,
            lambda: self.connectivity.is_online,
            background_sync=background_sync,
            on_depth_change=self._record_queue_depth,
        )
        self.connectivity.add_listener(self._on_connectivity_change)

    async def __aenter__(self) -> "Gateway":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    # ------------------------------------------------------------------
    # Public request API
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        queue_if_offline: bool = True,
        cache: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        return await self.send(RequestDescriptor(
            method=method,
            url=url,
            headers=dict(headers or {}),
            body=body,
            params=params,
            queue_if_offline=queue_if_offline,
            cache=cache,
            timeout=timeout,
        ))

    async def get(self, url: str, **kwargs) -> Any:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, body: Any = None, **kwargs) -> Any:
        return await self.request("POST", url, body=body, **kwargs)

    async def put(self, url: str, body: Any = None, **kwargs) -> Any:
        return await self.request("PUT", url, body=body, **kwargs)

    async def patch(self, url: str, body: Any = None, **kwargs) -> Any:
        return await self.request("PATCH", url, body=body, **kwargs)

    async def delete(self, url: str, **kwargs) -> Any:
        return await self.request("DELETE", url, **kwargs)

    async def upload(
        self,
        url: str,
        files: Dict[str, Any],
        *,
        data: Optional[Dict[str, Any]] = None,
        method: str = "POST",
        queue_if_offline: bool = True,
    ) -> Any:
        """Multipart upload through the same pipeline with the upload timeout."""
        return await self.send(RequestDescriptor(
            method=method,
            url=url,
            files=files,
            data=data,
            queue_if_offline=queue_if_offline,
            timeout=self.config.upload_timeout_seconds,
        ))

    async def send(self, request: RequestDescriptor) -> Any:
        await self.annotator.annotate(request)
        set_request_id(request.metadata["request_id"])
        set_user_role(request.headers.get("X-User-Role"))

        if request.queue_if_offline and self.offline_queue.should_queue(self.connectivity.is_online):
            return await self.offline_queue.enqueue(request)

        return await self._execute(request)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _replay(self, request: RequestDescriptor) -> Any:
        await self.annotator.annotate(request)
        return await self._execute(request, replaying=True)

    async def _execute(self, request: RequestDescriptor, *, replaying: bool = False) -> Any:
        try:
            response = await self.client.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.body if request.files is None else None,
                params=request.params,
                files=request.files,
                data=request.data,
                timeout=request.timeout or self.config.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            return await self._on_transport_error(request, exc, replaying)

        duration = time.monotonic() - request.metadata.get("start_time", time.monotonic())
        self.logger.info(
            "API request completed",
            method=request.method,
            url=request.url,
            status_code=response.status_code,
            duration_ms=int(duration * 1000),
        )
        if self.metrics:
            self.metrics.observe_histogram("gateway_request_duration_seconds", duration, method=request.method)

        if response.is_success:
            payload = self._parse_payload(response)
            if request.is_read and request.cache:
                await self._cache_store(request, payload)
            self._record_outcome(request, "success")
            return payload

        if response.status_code == 401 and not request.retried:
            return await self._retry_after_refresh(request, replaying)

        error = self.normalizer.from_response(response)
        self._record_outcome(request, error.kind.value)
        raise error

    async def _retry_after_refresh(self, request: RequestDescriptor, replaying: bool) -> Any:
        request.retried = True
        try:
            token = await self.coordinator.acquire_token()
        except GatewayError as error:
            self._record_outcome(request, error.kind.value)
            raise

        await self.annotator.annotate(request)
        request.headers["Authorization"] = f"Bearer {token}"
        self.logger.debug("Retrying request after token refresh", method=request.method, url=request.url)
        return await self._execute(request, replaying=replaying)

    async def _on_transport_error(self, request: RequestDescriptor, exc: httpx.TransportError, replaying: bool) -> Any:
        if request.is_read and request.cache:
            entry = await self._cache_lookup(request)
            if entry is not None:
                self.logger.info("Serving from cache", url=request.url, error=str(exc))
                self._record_outcome(request, "cache_fallback")
                return entry.payload

        if not replaying and request.queue_if_offline and not self.connectivity.is_online:
            return await self.offline_queue.enqueue(request)

        self.logger.warning("Network error", method=request.method, url=request.url, error=str(exc))
        self._record_outcome(request, "NETWORK_ERROR")
        raise self.normalizer.network_error(exc) from exc

    async def _cache_store(self, request: RequestDescriptor, payload: Any):
        try:
            await self.cache.store(request.cache_key, payload)
        except Exception as exc:
            self.logger.warning("Response cache write failed", url=request.url, error=str(exc))

    async def _cache_lookup(self, request: RequestDescriptor) -> Optional[CacheEntry]:
        try:
            return await self.cache.lookup(request.cache_key)
        except Exception as exc:
            self.logger.warning("Response cache read failed", url=request.url, error=str(exc))
            return None

    async def _call_refresh_endpoint(self, refresh_token: str) -> TokenPair:
        """Exchange the refresh credential, outside the request pipeline."""
        try:
            response = await self.client.post(
                self.config.refresh_url,
                json={"refreshToken": refresh_token},
                timeout=self.config.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            raise self.normalizer.network_error(exc) from exc

        if not response.is_success:
            raise self.normalizer.from_response(response)
        return TokenPair.from_payload(response.json())

    @staticmethod
    def _parse_payload(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # ------------------------------------------------------------------
    # Connectivity and bookkeeping
    # ------------------------------------------------------------------

    async def _on_connectivity_change(self, online: bool):
        if online:
            await self.offline_queue.drain()

    def _record_outcome(self, request: RequestDescriptor, outcome: str):
        if self.metrics:
            self.metrics.increment_counter("gateway_requests_total", method=request.method, outcome=outcome)
            if outcome not in ("success", "cache_fallback"):
                self.metrics.record_error(outcome)

    def _record_queue_depth(self, depth: int):
        if self.metrics:
            self.metrics.set_gauge("gateway_offline_queue_depth", depth)

    # ------------------------------------------------------------------
    # Helpers for the UI layer
    # ------------------------------------------------------------------

    async def set_auth_token(self, token: Optional[str]):
        await self.credentials.set_token(token)

    async def login(self, token: str, refresh_token: Optional[str] = None, role: Optional[str] = None):
        """Store credentials from a fresh login and start a new session."""
        await self.credentials.store_tokens(token, refresh_token)
        if role:
            await self.credentials.set_role(role)
            await self.credentials.set_role_token(role, token)
        self.coordinator.reset()

    async def logout(self):
        await self.credentials.clear()
        await self.cache.clear()

    async def clear_cache(self) -> int:
        return await self.cache.clear()

    async def cache_stats(self) -> Dict[str, Any]:
        return await self.cache.stats()

    def is_online(self) -> bool:
        return self.connectivity.is_online

    async def set_online(self, online: bool):
        await self.connectivity.set_online(online)

    def start_connectivity_probe(self):
        """Ping the API periodically and drive the online flag from the result."""
        self.connectivity.start(
            self.client,
            self.config.ping_url,
            interval=self.config.ping_interval_seconds,
            timeout=self.config.ping_timeout_seconds,
        )

    def queued_requests_count(self) -> int:
        return len(self.offline_queue)

    @property
    def auth_state(self) -> AuthState:
        return self.coordinator.state

    async def aclose(self):
        await self.connectivity.stop()
        await self.client.aclose()
        await self.cache.backend.close()
