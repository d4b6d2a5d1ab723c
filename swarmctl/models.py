"""Configuration models for swarmctl.

Pydantic models validated by :class:`swarmctl.config.config.ConfigManager`.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

DEFAULT_EVENT_CHANNELS = ["log", "network", "state"]


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DaemonConfig(BaseModel):
    """Daemon connection configuration."""

    endpoint: str | None = Field(
        default=None,
        description="Local IPC endpoint (Unix socket path or Windows pipe name)",
    )
    read_limit: int = Field(
        default=16 * 1024 * 1024,
        ge=64 * 1024,
        le=1024 * 1024 * 1024,
        description="Maximum length of a single frame line in bytes",
    )


class InterfaceConfig(BaseModel):
    """Interactive client configuration."""

    event_channels: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EVENT_CHANNELS),
        description="Daemon event channels to subscribe to",
    )
    logs_max: int = Field(
        default=5000,
        ge=1,
        le=1_000_000,
        description="Maximum number of daemon log entries kept in memory",
    )
    logs_tail_lines: int = Field(
        default=200,
        ge=1,
        le=5000,
        description="Number of log lines requested on logs refresh",
    )

    @field_validator("event_channels")
    @classmethod
    def _strip_channels(cls, value: list[str]) -> list[str]:
        channels = [c.strip() for c in value if c and c.strip()]
        if not channels:
            msg = "at least one event channel is required"
            raise ValueError(msg)
        return channels


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Use structured (JSON) logging",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Main configuration model."""

    daemon: DaemonConfig = Field(default_factory=DaemonConfig)
    interface: InterfaceConfig = Field(default_factory=InterfaceConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
