"""
Shared utilities for the Creator Platform client layer.

This package aggregates common building blocks consumed by the gateway
and the service modules built on top of it:

- config: Gateway configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and the gateway error taxonomy
- retry: Retry decorator for reconnecting channels

Do not import from client_gateway into shared/.
"""
