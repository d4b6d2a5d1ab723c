"""Configuration management for swarmctl.

Provides centralized configuration with validation and hierarchical loading
from defaults → environment → explicit overrides (CLI).
"""

from __future__ import annotations

import logging
import os
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from swarmctl.models import Config, ObservabilityConfig
from swarmctl.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Global configuration instance
_config_manager: ConfigManager | None = None

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    "SWARMFS_IPC_ENDPOINT": "daemon.endpoint",
    "SWARMFS_READ_LIMIT": "daemon.read_limit",
    "SWARMFS_EVENT_CHANNELS": "interface.event_channels",
    "SWARMFS_LOGS_MAX": "interface.logs_max",
    "SWARMFS_LOGS_TAIL_LINES": "interface.logs_tail_lines",
    "SWARMFS_LOG_LEVEL": "observability.log_level",
    "SWARMFS_LOG_FILE": "observability.log_file",
    "SWARMFS_STRUCTURED_LOGGING": "observability.structured_logging",
    "SWARMFS_LOG_CORRELATION_ID": "observability.log_correlation_id",
}

# Paths whose values are never coerced to bool/int/float
_STRING_PATHS = {
    "daemon.endpoint",
    "observability.log_file",
    "observability.log_level",
}

_LIST_PATHS = {"interface.event_channels"}

_BOOL_PATHS = {
    "observability.structured_logging",
    "observability.log_correlation_id",
}


def _parse_env_value(raw: str, path: str) -> bool | int | float | str | list[str]:
    if path in _LIST_PATHS:
        return [item.strip() for item in raw.split(",") if item.strip()]
    if path in _STRING_PATHS:
        return raw.upper() if path == "observability.log_level" else raw
    if path in _BOOL_PATHS:
        low = raw.lower()
        if low in {"true", "1", "yes", "on"}:
            return True
        if low in {"false", "0", "no", "off"}:
            return False
        return raw
    try:
        if "." in raw:
            return float(raw)
        return int(raw)
    except ValueError:
        return raw


def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = d
    for p in parts[:-1]:
        cur = cur.setdefault(p, {})
    cur[parts[-1]] = value


class ConfigManager:
    """Builds and validates the client configuration."""

    def __init__(self, overrides: dict[str, Any] | None = None):
        """Initialize configuration manager.

        Args:
            overrides: Nested overrides applied after the environment
                (e.g. ``{"daemon": {"endpoint": "/run/swarmfs.sock"}}``)

        """
        self.overrides = overrides or {}
        self.config = self._load_config()

    def _load_config(self) -> Config:
        """Load configuration from defaults, environment and overrides."""
        config_data: dict[str, Any] = {}

        env_config = self._get_env_config()
        config_data = self._merge_config(config_data, env_config)
        config_data = self._merge_config(config_data, self.overrides)

        try:
            return Config(**config_data)
        except PydanticValidationError as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}

        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            logger.debug("Config override from %s", env_name)
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))

        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(overrides: dict[str, Any] | None = None) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(overrides)
    return _config_manager


def set_config(new_config: Config) -> None:
    """Replace the global configuration at runtime."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    _config_manager.config = new_config


def reset_config() -> None:
    """Drop the global configuration so the next access reloads it."""
    global _config_manager
    _config_manager = None


def get_observability_config() -> ObservabilityConfig:
    """Get observability configuration."""
    return get_config().observability
