"""Application settings loaded from environment variables via pydantic-settings.

# --- HOW SETTINGS WORK ---------------------------------------------------
#
# Values are read from two sources, in priority order:
#
#   1. Environment variables  -- e.g. CACHE_EXPIRATION_SECONDS=3600
#   2. .env file              -- key=value lines in the project root
#
# Field ``buffer_cache_capacity`` maps to env var ``BUFFER_CACHE_CAPACITY``.
# Defaults apply when neither source sets a field.
# ------------------------------------------------------------------------
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """soundcache settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Cache ===
    # TTL fallback for resources served without ETag / Last-Modified.
    cache_expiration_seconds: float = Field(default=24 * 60 * 60, ge=0)
    buffer_cache_capacity: int = Field(default=100, ge=1)

    # === Persistent store ===
    store_backend: Literal["sqlite", "memory"] = "sqlite"
    store_name: str = "audio-cache"
    store_path: str = "data/audio_cache.db"

    # === HTTP ===
    http_timeout: float = 30.0
    user_agent: str = "soundcache/0.1.0"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
