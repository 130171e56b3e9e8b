"""
Shared configuration management for the Edge Fetch Proxy.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Rate limiting (fixed window, per client key)
    rate_limit_max_requests: int = Field(default=20, ge=1)
    rate_limit_window_seconds: int = Field(default=60, ge=1)

    # Edge cache
    cache_backend: str = Field(default="memory")
    cache_max_entries: int = Field(default=1024, ge=1)
    cache_max_age_seconds: int = Field(default=60, ge=0)
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Origin client
    origin_timeout_seconds: float = Field(default=10.0, gt=0)
    origin_follow_redirects: bool = Field(default=False)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
