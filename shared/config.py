"""
Shared configuration management for the voice platform services.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    postgres_dsn: str = Field(default="postgres://localhost:5432/xiaozhi")
    postgres_min_pool: int = Field(default=2)
    postgres_max_pool: int = Field(default=10)
    postgres_command_timeout: float = Field(default=30)

    # Timbre cache
    cache_namespace: str = Field(default="timbre")
    cache_default_ttl: int = Field(default=60 * 60 * 24)
    invalidate_on_delete: bool = Field(default=False)

    # Cross-module checks
    validate_tts_model: bool = Field(default=False)

    # Localization
    locale: str = Field(default="zh-CN")

    # Header carrying the caller identity forwarded by the gateway
    user_id_header: str = Field(default="X-User-Id")


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
