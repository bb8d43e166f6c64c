"""
Configuration management for hazcomtrainer.

Loads config.yaml and provides typed access to settings.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV_VAR = "HAZCOMTRAINER_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.resolve() / "config.yaml"

_config_cache: dict[str, Any] | None = None


def config_path() -> Path:
    """Return the active config file, honoring the environment override."""
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    return Path(override) if override else DEFAULT_CONFIG_PATH


def get_config(reload: bool = False) -> dict[str, Any]:
    """
    Load configuration from config.yaml.

    Args:
        reload: Force reload even if cached

    Returns:
        Configuration dictionary
    """
    global _config_cache

    if _config_cache is not None and not reload:
        return _config_cache

    path = config_path()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        _config_cache = yaml.safe_load(f) or {}

    return _config_cache


def get_config_value(*keys: str, default: Any = None) -> Any:
    """
    Get a nested config value safely.

    Example:
        threshold = get_config_value("assessment", "pass_threshold", default=80)
    """
    config: Any = get_config()

    for key in keys:
        if isinstance(config, dict) and key in config:
            config = config[key]
        else:
            return default

    return config


class TrainerSettings:
    """
    Typed access to trainer settings with fallbacks.

    Pass a mapping to bypass the config file (tests do this).
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self._config = config

    def _value(self, section: str, key: str, default: Any) -> Any:
        if self._config is None:
            self._config = get_config()
        value = self._config.get(section, {}) or {}
        return value.get(key, default)

    @property
    def database(self) -> Path:
        return Path(self._value("storage", "database", ".hazcomtrainer/training.db"))

    @property
    def storage_key(self) -> str:
        return str(self._value("standalone", "storage_key", "shieldsds-training-v2"))

    @property
    def organization_name(self) -> str:
        return str(self._value("organization", "name", ""))

    @property
    def default_industry(self) -> str:
        return str(self._value("organization", "default_industry", "auto-body"))

    @property
    def default_headcount(self) -> int:
        return int(self._value("organization", "default_headcount", 5))

    @property
    def pass_threshold(self) -> int:
        threshold = int(self._value("assessment", "pass_threshold", 80))
        if not 0 < threshold <= 100:
            raise ValueError(f"pass_threshold must be between 1 and 100, got {threshold}")
        return threshold

    @property
    def log_level(self) -> int:
        name = str(self._value("logging", "level", "INFO")).upper()
        level = logging.getLevelName(name)
        return level if isinstance(level, int) else logging.INFO
