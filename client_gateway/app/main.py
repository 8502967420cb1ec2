"""
Client gateway wiring for the Creator Platform client layer.
"""

from typing import Any, Callable, Optional

import httpx

from shared.config import GatewayConfig, get_config
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector
from .annotation.annotator import DeviceProfile, RequestAnnotator
from .auth.credentials import CredentialStore
from .auth.refresh import LoginRedirector
from .caching.response_cache import ResponseCache
from .caching.storage import InMemoryStore, KeyValueStore, RedisStore
from .gateway import Gateway
from .offline.connectivity import ConnectivityMonitor
from .realtime.channel import RealtimeChannel


def create_gateway(
    config: Optional[GatewayConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    store: Optional[KeyValueStore] = None,
    navigate: Optional[Callable[[str], Any]] = None,
    current_path: Optional[Callable[[], Optional[str]]] = None,
    device: Optional[DeviceProfile] = None,
    metrics: Optional[MetricsCollector] = None,
    background_sync: Optional[Callable[[str], Any]] = None,
    online: bool = True,
) -> Gateway:
    """Build a gateway with its own store, cache, queue and refresh state."""
    config = config or get_config()
    configure_logging("gateway", config.log_level)
    logger = get_logger("gateway.main")

    if store is None:
        store = RedisStore(config.redis_url) if config.redis_url else InMemoryStore()

    client = httpx.AsyncClient(
        base_url=config.api_base_url,
        timeout=config.request_timeout_seconds,
        transport=transport,
    )

    credentials = CredentialStore(store)
    connectivity = ConnectivityMonitor(online=online)
    cache = ResponseCache(store, config.cache_ttl_seconds, metrics=metrics)
    annotator = RequestAnnotator(credentials, device=device, timezone=config.timezone)

    gateway = Gateway(
        config,
        client,
        credentials=credentials,
        annotator=annotator,
        cache=cache,
        connectivity=connectivity,
        redirector=LoginRedirector(current_path=current_path, navigate=navigate),
        background_sync=background_sync,
        metrics=metrics,
    )

    logger.info(
        "Gateway created",
        base_url=config.api_base_url,
        store=type(store).__name__,
        cache_ttl_seconds=config.cache_ttl_seconds,
    )
    return gateway


def create_realtime_channel(gateway: Gateway) -> RealtimeChannel:
    """Realtime channel sharing the gateway's credentials and device profile."""
    config = gateway.config
    return RealtimeChannel(
        config.socket_url,
        gateway.credentials,
        config.socket_reconnect_attempts,
        config.socket_reconnect_delay_seconds,
        device_type=gateway.annotator.device.device_type,
    )
