"""Environment-backed settings for Kitchenboard."""
from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    env_mode: str = "DEV"
    app_brand: str = "Kitchen Dashboard"

    api_base_url: str = "http://localhost:3000"
    orders_path: str = "/kitchen/orders"
    start_preparing_path: str = "/kitchen/orders/{order_id}/start-preparing"
    mark_ready_path: str = "/kitchen/orders/{order_id}/ready"
    http_timeout_sec: float = 5.0

    refresh_interval_sec: float = 10.0
    notice_limit: int = 50

    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8790


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of application settings."""

    return AppSettings()
