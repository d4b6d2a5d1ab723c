"""Exception hierarchy for swarmctl.

Errors raised inside the session layer never cross a background task
boundary as exceptions: job runners turn them into ``failed`` job messages.
"""

from __future__ import annotations

from typing import Any


class SwarmCtlError(Exception):
    """Base exception for all swarmctl errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize swarmctl error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class TransportError(SwarmCtlError):
    """Endpoint unreachable or the byte stream failed mid-read."""


class DisconnectedError(TransportError):
    """The daemon closed the connection."""

    def __init__(self, message: str = "daemon disconnected", details: dict[str, Any] | None = None):
        """Initialize disconnected error."""
        super().__init__(message, details)


class ProtocolError(SwarmCtlError):
    """A frame could not be encoded for the wire."""


class RpcError(SwarmCtlError):
    """The daemon answered a request with ``ok: false``."""

    def __init__(self, message: str, method: str | None = None):
        """Initialize RPC error.

        Args:
            message: Daemon-supplied error message (kept verbatim)
            method: Method that failed, if known

        """
        super().__init__(message)
        self.method = method


class ValidationError(SwarmCtlError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""
