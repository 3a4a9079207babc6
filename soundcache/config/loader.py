"""YAML configuration loader with environment variable overrides.

# --- CONFIGURATION HIERARCHY ---------------------------------------------
#
# Layers, later ones winning:
#
#   1. Settings defaults
#   2. config/config.yaml  -- static values checked into the repo
#   3. .env / environment  -- only the fields actually set there
#
# The _deep_merge helper does recursive dict merging:
#   base = {"cache": {"capacity": 100}}
#   overrides = {"cache": {"expiration_seconds": 60}}
#   result = {"cache": {"capacity": 100, "expiration_seconds": 60}}
# ------------------------------------------------------------------------
"""

from pathlib import Path

import yaml

from soundcache.config.settings import Settings

# Settings field -> (section, key) in the resolved config dict.
_FIELD_MAP = {
    "cache_expiration_seconds": ("cache", "expiration_seconds"),
    "buffer_cache_capacity": ("cache", "capacity"),
    "store_backend": ("store", "backend"),
    "store_name": ("store", "name"),
    "store_path": ("store", "path"),
    "http_timeout": ("http", "timeout"),
    "user_agent": ("http", "user_agent"),
    "app_env": ("app", "env"),
    "log_level": ("logging", "level"),
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is treated
            as empty.
        settings: Pre-built settings; read from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary with ``cache``, ``store``,
        ``http``, ``app`` and ``logging`` sections.
    """
    settings = settings or Settings()

    config = _sections(settings, Settings.model_fields)

    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    _deep_merge(config, _sections(settings, settings.model_fields_set))
    return config


def _sections(settings: Settings, fields) -> dict:
    result: dict = {}
    for field in fields:
        if field not in _FIELD_MAP:
            continue
        section, key = _FIELD_MAP[field]
        result.setdefault(section, {})[key] = getattr(settings, field)
    return result


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
