"""Configuration package for swarmctl."""

from __future__ import annotations

from swarmctl.config.config import (
    ConfigManager,
    get_config,
    init_config,
    reset_config,
    set_config,
)

__all__ = [
    "ConfigManager",
    "get_config",
    "init_config",
    "reset_config",
    "set_config",
]
