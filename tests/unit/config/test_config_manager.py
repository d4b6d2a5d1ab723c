"""Tests for configuration loading from the environment and overrides."""

from __future__ import annotations

import pytest

from swarmctl.config.config import (
    ConfigManager,
    get_config,
    get_observability_config,
    init_config,
    reset_config,
    set_config,
)
from swarmctl.models import Config, DaemonConfig, InterfaceConfig, LogLevel
from swarmctl.utils.exceptions import ConfigurationError


class TestDefaults:
    """Default configuration values."""

    def test_defaults(self):
        """Test that an empty environment yields the defaults."""
        config = ConfigManager().config

        assert config.daemon.endpoint is None
        assert config.daemon.read_limit == 16 * 1024 * 1024
        assert config.interface.event_channels == ["log", "network", "state"]
        assert config.interface.logs_max == 5000
        assert config.observability.log_level is LogLevel.INFO
        assert config.observability.structured_logging is False


class TestEnvironment:
    """SWARMFS_* variables."""

    def test_env_overrides(self, monkeypatch):
        """Test that environment variables are parsed into the right types."""
        monkeypatch.setenv("SWARMFS_IPC_ENDPOINT", "/run/swarmfs/ipc.sock")
        monkeypatch.setenv("SWARMFS_READ_LIMIT", "1048576")
        monkeypatch.setenv("SWARMFS_EVENT_CHANNELS", " log , state ,")
        monkeypatch.setenv("SWARMFS_LOGS_MAX", "1")
        monkeypatch.setenv("SWARMFS_LOG_LEVEL", "debug")
        monkeypatch.setenv("SWARMFS_STRUCTURED_LOGGING", "yes")
        monkeypatch.setenv("SWARMFS_LOG_CORRELATION_ID", "off")

        config = ConfigManager().config

        assert config.daemon.endpoint == "/run/swarmfs/ipc.sock"
        assert config.daemon.read_limit == 1048576
        assert config.interface.event_channels == ["log", "state"]
        assert config.interface.logs_max == 1
        assert config.observability.log_level is LogLevel.DEBUG
        assert config.observability.structured_logging is True
        assert config.observability.log_correlation_id is False

    def test_numeric_endpoint_stays_string(self, monkeypatch):
        """Test that endpoints are never coerced to numbers."""
        monkeypatch.setenv("SWARMFS_IPC_ENDPOINT", "1234")

        assert ConfigManager().config.daemon.endpoint == "1234"

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("SWARMFS_READ_LIMIT", "12"),
            ("SWARMFS_LOGS_MAX", "many"),
            ("SWARMFS_LOG_LEVEL", "chatty"),
            ("SWARMFS_EVENT_CHANNELS", " , "),
            ("SWARMFS_STRUCTURED_LOGGING", "maybe"),
        ],
    )
    def test_invalid_values_rejected(self, monkeypatch, name, value):
        """Test that invalid environment values raise ConfigurationError."""
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            ConfigManager()

    def test_overrides_win_over_environment(self, monkeypatch):
        """Test precedence of explicit overrides."""
        monkeypatch.setenv("SWARMFS_IPC_ENDPOINT", "/from/env")
        monkeypatch.setenv("SWARMFS_LOGS_MAX", "10")

        config = ConfigManager({"daemon": {"endpoint": "/from/cli"}}).config

        assert config.daemon.endpoint == "/from/cli"
        assert config.interface.logs_max == 10


class TestGlobalConfig:
    """Module-level accessors."""

    def test_init_and_get(self):
        """Test that init_config replaces the global configuration."""
        manager = init_config({"daemon": {"endpoint": "/x"}})

        assert get_config() is manager.config
        assert get_config().daemon.endpoint == "/x"
        assert get_observability_config().log_level is LogLevel.INFO

    def test_set_and_reset(self):
        """Test set_config and reset_config."""
        custom = Config(
            daemon=DaemonConfig(endpoint="/y"),
            interface=InterfaceConfig(logs_max=7),
        )
        set_config(custom)
        assert get_config() is custom

        reset_config()
        assert get_config().daemon.endpoint is None
