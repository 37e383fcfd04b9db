"""Configuration management for leftysay.

Stores configuration in the user configuration directory:
- macOS: ~/Library/Application Support/leftysay/config.json
- elsewhere: $XDG_CONFIG_HOME/leftysay/config.json (~/.config by default)

LEFTYSAY_CONFIG_DIR overrides the location.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from .models import DEFAULT_CACHE_MAX_MB, DEFAULT_MAX_HEIGHT_RATIO, DEFAULT_RENDER_TIMEOUT

logger = logging.getLogger(__name__)

APP_NAME = "leftysay"
CONFIG_FILENAME = "config.json"

# Default configuration values
DEFAULTS: dict[str, Any] = {
    "enabled": True,  # False turns leftysay into a no-op (e.g. in shell startup files)
    "default_pack": "default",
    "format": "auto",  # "auto", "symbols", "kitty", "iterm" or "sixels"
    "colors": "auto",  # "auto", "full", "256" or "16"
    "max_height_ratio": DEFAULT_MAX_HEIGHT_RATIO,  # Image height as a fraction of terminal rows
    "bubble_style": "classic",  # "classic", "round", "square", "double" or "ascii"
    "layout": "vertical",  # "vertical" or "side-by-side"
    "cache": True,  # Cache rendered images between runs
    "cache_max_mb": DEFAULT_CACHE_MAX_MB,
    "animate": False,  # Play animated GIFs
    "render_timeout": DEFAULT_RENDER_TIMEOUT,  # Seconds to wait for chafa
    "log_level": "WARNING",  # Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
}


def _xdg_dir(env_var: str, fallback: Path) -> Path:
    value = os.environ.get(env_var)
    return Path(value) if value else fallback


def config_dir() -> Path:
    """Directory holding config.json."""
    override = os.environ.get("LEFTYSAY_CONFIG_DIR")
    if override:
        return Path(override)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    return _xdg_dir("XDG_CONFIG_HOME", Path.home() / ".config") / APP_NAME


def data_dir() -> Path:
    """Per-user data directory (packs live in its ``packs`` subdirectory)."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    return _xdg_dir("XDG_DATA_HOME", Path.home() / ".local" / "share") / APP_NAME


def cache_dir() -> Path:
    """Directory for rendered image cache entries."""
    override = os.environ.get("LEFTYSAY_CACHE_DIR")
    if override:
        return Path(override)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / APP_NAME
    return _xdg_dir("XDG_CACHE_HOME", Path.home() / ".cache") / APP_NAME


def config_file() -> Path:
    """Path of the configuration file."""
    return config_dir() / CONFIG_FILENAME


def _sanitize(config: dict[str, Any]) -> dict[str, Any]:
    """Replace out-of-range values with their defaults."""
    try:
        ratio = float(config["max_height_ratio"])
    except (TypeError, ValueError):
        ratio = 0.0
    if not 0.0 < ratio <= 1.0:
        logger.warning("Ignoring max_height_ratio=%r, using default", config["max_height_ratio"])
        ratio = DEFAULT_MAX_HEIGHT_RATIO
    config["max_height_ratio"] = ratio

    try:
        cache_max_mb = int(config["cache_max_mb"])
    except (TypeError, ValueError):
        cache_max_mb = 0
    if cache_max_mb <= 0:
        cache_max_mb = DEFAULT_CACHE_MAX_MB
    config["cache_max_mb"] = cache_max_mb

    try:
        timeout = float(config["render_timeout"])
    except (TypeError, ValueError):
        timeout = 0.0
    config["render_timeout"] = timeout if timeout > 0 else DEFAULT_RENDER_TIMEOUT
    return config


def _load_config() -> dict[str, Any]:
    """Load configuration from disk, returning defaults if file doesn't exist."""
    path = config_file()
    if not path.exists():
        return DEFAULTS.copy()

    try:
        with open(path, "r") as f:
            stored = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return DEFAULTS.copy()

    if not isinstance(stored, dict):
        logger.warning("Ignoring config %s: expected a JSON object", path)
        return DEFAULTS.copy()

    # Merge with defaults to ensure all keys exist
    result = DEFAULTS.copy()
    result.update(stored)
    return _sanitize(result)


def _save_config(config: dict[str, Any]) -> None:
    """Save configuration to disk."""
    config_dir().mkdir(parents=True, exist_ok=True)
    with open(config_file(), "w") as f:
        json.dump(config, f, indent=2)


def get_config() -> dict[str, Any]:
    """Get current configuration."""
    return _load_config()


def update_config(updates: dict[str, Any]) -> dict[str, Any]:
    """Update multiple configuration values and return updated config."""
    for key in updates:
        if key not in DEFAULTS:
            raise ValueError(f"Unknown configuration key: {key}")

    config = _load_config()
    config.update(updates)
    _save_config(config)
    return config
