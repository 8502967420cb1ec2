"""
Prometheus instrumentation for the client gateway.

Metrics are declared once in ``GATEWAY_METRICS`` and registered per
collector, so each ``MetricsCollector`` may own an isolated registry.
"""

from typing import Any, Dict, Optional, Tuple, Type

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info

REQUEST_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0)

# name -> (type, help, labels)
GATEWAY_METRICS: Dict[str, Tuple[Type, str, Tuple[str, ...]]] = {
    "gateway_requests_total": (Counter, "Requests completed by the gateway, by outcome", ("method", "outcome")),
    "gateway_request_duration_seconds": (Histogram, "Network round-trip duration", ("method",)),
    "gateway_cache_events_total": (Counter, "Response cache hits, misses, stores and fallbacks", ("event",)),
    "gateway_offline_queue_depth": (Gauge, "Requests held while offline", ()),
    "gateway_token_refresh_total": (Counter, "Access token refresh attempts, by result", ("result",)),
}


class MetricsCollector:
    """Owns the gateway's metric objects and a registry to publish them in."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {
            "errors_total": Counter(
                "errors_total", "Failed requests by error kind", ["error_type", "service"], registry=self.registry
            ),
        }

        info = Info("service_info", "Client component identity", registry=self.registry)
        info.info({"service": service_name, "version": "1.0.0"})
        self._metrics["service_info"] = info

        if service_name == "gateway":
            for name, (kind, documentation, labels) in GATEWAY_METRICS.items():
                kwargs: Dict[str, Any] = {"registry": self.registry}
                if kind is Histogram:
                    kwargs["buckets"] = REQUEST_DURATION_BUCKETS
                self._metrics[name] = kind(name, documentation, list(labels), **kwargs)

    def get_metric(self, name: str):
        return self._metrics.get(name)

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Current value of one sample, or None if it was never recorded."""
        return self.registry.get_sample_value(name, labels or {})

    def record_error(self, error_type: str, service: Optional[str] = None):
        self._metrics["errors_total"].labels(error_type=error_type, service=service or self.service_name).inc()

    def _child(self, metric_name: str, labels: Dict[str, str]):
        metric = self._metrics.get(metric_name)
        if metric is None:
            return None
        return metric.labels(**labels) if labels else metric

    def increment_counter(self, metric_name: str, **labels):
        """Increment ``metric_name``; unknown names are ignored."""
        child = self._child(metric_name, labels)
        if child is not None:
            child.inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        child = self._child(metric_name, labels)
        if child is not None:
            child.set(value)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        child = self._child(metric_name, labels)
        if child is not None:
            child.observe(value)
