"""Environment-based configuration for Pixelsmith."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from PIXELSMITH_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PIXELSMITH_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # Input limits
    max_file_size: int = Field(default=52_428_800, ge=1)
    max_image_pixels: int = Field(default=100_000_000, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)
    queue_timeout: float = Field(default=5.0, gt=0)
    batch_workers: int = Field(default=1, ge=1)

    # Encoding policy
    allow_lossy_downscale_for_lossless: bool = True

    # Watermark text rendering
    fallback_font: str | None = None
    font_cache_size: int = Field(default=64, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
