"""
Shared configuration management for the Creator Platform client layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Local storage backend; in-memory when unset
    redis_url: Optional[str] = Field(default=None)


class GatewayConfig(BaseConfig):
    """HTTP client gateway configuration."""

    # Endpoints
    api_base_url: str = Field(default="https://sexyselfies-api.onrender.com/api")
    socket_url: str = Field(default="ws://localhost:5002")
    refresh_path: str = Field(default="/auth/refresh")
    ping_path: str = Field(default="/ping")

    # Timeouts
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    upload_timeout_seconds: float = Field(default=300.0, gt=0)
    ping_timeout_seconds: float = Field(default=5.0, gt=0)
    ping_interval_seconds: float = Field(default=30.0, gt=0)

    # Response cache
    cache_ttl_seconds: int = Field(default=300, gt=0)

    # Request annotation
    timezone: Optional[str] = Field(default=None)

    # Realtime channel
    socket_reconnect_attempts: int = Field(default=5, ge=1)
    socket_reconnect_delay_seconds: float = Field(default=1.0, ge=0)

    @property
    def refresh_url(self) -> str:
        return self.api_base_url.rstrip("/") + "/" + self.refresh_path.lstrip("/")

    @property
    def ping_url(self) -> str:
        return self.api_base_url.rstrip("/") + "/" + self.ping_path.lstrip("/")


def get_config(**overrides) -> GatewayConfig:
    """Get gateway configuration, explicit overrides win over environment."""
    return GatewayConfig(**overrides)
