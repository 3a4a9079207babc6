"""Utility modules for soundcache.

- **errors** -- exception hierarchy rooted at SoundCacheError; each terminal
  load state has its own subclass plus an ``errorType`` label.
- **concurrency** -- AbortSignal and the ``race`` helper used for per-caller
  cancellation.
- **data_url** -- parsing of inline ``data:`` resource keys.
- **logging** -- structlog setup with console output in development and
  JSON in production.
"""

from soundcache.utils.concurrency import AbortSignal, race
from soundcache.utils.data_url import is_data_url, parse_data_url
from soundcache.utils.errors import (
    AbortError,
    ConfigurationError,
    ConsistencyError,
    DecodeError,
    NetworkError,
    SoundCacheError,
    StoreError,
    classify_error,
)
from soundcache.utils.logging import configure_logging, get_logger

__all__ = [
    "AbortError",
    "AbortSignal",
    "ConfigurationError",
    "ConsistencyError",
    "DecodeError",
    "NetworkError",
    "SoundCacheError",
    "StoreError",
    "classify_error",
    "configure_logging",
    "get_logger",
    "is_data_url",
    "parse_data_url",
    "race",
]
