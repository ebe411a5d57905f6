"""Tracker configuration.

Settings are read from ``ANALYTICS_*`` environment variables (or a ``.env``
file), so a deployment can switch collectors and tune batching without
touching code.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ANALYTICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    is_enabled: bool = False
    custom_endpoint: str | None = None

    # Batching
    batch_size: int = Field(default=10, ge=1)
    flush_interval: float = Field(default=5.0, gt=0)     # seconds
    retry_delay: float = Field(default=1.0, ge=0)        # seconds
    scroll_debounce: float = Field(default=1.0, ge=0)    # seconds

    enable_debug_mode: bool = False
    enable_beacon_analytics: bool = True
    request_timeout: float = Field(default=10.0, gt=0)

    # Optional third-party sinks
    ga_tracking_id: str | None = None
    ga_endpoint: str = "https://www.google-analytics.com/mp/collect"
    facebook_pixel_id: str | None = None
    pixel_endpoint: str = "https://graph.facebook.com/v18.0/events"
