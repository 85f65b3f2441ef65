"""PixCache Settings - Environment Configuration.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pixcache_core.store.backend import DEFAULT_TTL

MAX_TTL_SECONDS = 100 * 365 * 24 * 3600


class PixCacheSettings(BaseSettings):
    """Cache settings loaded from PIXCACHE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PIXCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ttl_seconds: float = Field(
        default=DEFAULT_TTL.total_seconds(),
        ge=0,
        le=MAX_TTL_SECONDS,
        allow_inf_nan=False,
    )
    cache_dir: Optional[str] = None
    asset_root: Optional[str] = None
    request_timeout: float = Field(default=10.0, gt=0, allow_inf_nan=False)


__all__ = ["PixCacheSettings", "MAX_TTL_SECONDS"]
