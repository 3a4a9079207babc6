"""Configuration module -- exports Settings and load_config."""

from soundcache.config.loader import load_config
from soundcache.config.settings import Settings

__all__ = ["Settings", "load_config"]
