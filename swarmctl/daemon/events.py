"""Typed daemon events.

Pushed event frames are decoded into a closed set of known event kinds plus
:class:`UnknownEvent`, which keeps the raw name and payload of anything this
client does not recognize so newer daemons never break decoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from swarmctl.daemon.ipc_protocol import EventFrame

LOG_EVENT = "log"
NETWORK_PREFIX = "network."
STATE_PREFIX = "state."
NETWORK_STATS_EVENT = "network.stats"
STATE_FILES_EVENT = "state.files"
STATE_TOPICS_EVENT = "state.topics"


@dataclass(frozen=True)
class LogEntry:
    """One daemon log line."""

    ts: int = 0
    level: str = "info"
    message: str = ""

    @classmethod
    def from_data(cls, data: Any) -> LogEntry:
        """Build an entry leniently; missing or mistyped fields take defaults."""
        if not isinstance(data, dict):
            return cls()
        ts = data.get("ts")
        level = data.get("level")
        message = data.get("message")
        return cls(
            ts=ts if isinstance(ts, int) and not isinstance(ts, bool) else 0,
            level=level if isinstance(level, str) else "info",
            message=message if isinstance(message, str) else "",
        )


@dataclass(frozen=True)
class LogEvent:
    """``log`` event."""

    entry: LogEntry
    name: str = LOG_EVENT


@dataclass(frozen=True)
class NetworkStatsEvent:
    """``network.stats`` snapshot."""

    data: Any
    name: str = NETWORK_STATS_EVENT


@dataclass(frozen=True)
class NetworkEvent:
    """Any other ``network.*`` event."""

    name: str
    data: Any


@dataclass(frozen=True)
class FilesStateEvent:
    """``state.files`` snapshot."""

    data: Any
    name: str = STATE_FILES_EVENT


@dataclass(frozen=True)
class TopicsStateEvent:
    """``state.topics`` snapshot."""

    data: Any
    name: str = STATE_TOPICS_EVENT


@dataclass(frozen=True)
class StateEvent:
    """Any other ``state.*`` event."""

    name: str
    data: Any


@dataclass(frozen=True)
class UnknownEvent:
    """Event outside every known namespace, kept verbatim."""

    name: str
    data: Any


DaemonEvent = Union[
    LogEvent,
    NetworkStatsEvent,
    NetworkEvent,
    FilesStateEvent,
    TopicsStateEvent,
    StateEvent,
    UnknownEvent,
]


def decode_event(frame: EventFrame) -> DaemonEvent:
    """Map an event frame onto its typed event. Never fails."""
    name = frame.event
    data = frame.data

    if name == LOG_EVENT:
        return LogEvent(LogEntry.from_data(data))
    if name.startswith(NETWORK_PREFIX):
        if name == NETWORK_STATS_EVENT:
            return NetworkStatsEvent(data)
        return NetworkEvent(name, data)
    if name.startswith(STATE_PREFIX):
        if name == STATE_FILES_EVENT:
            return FilesStateEvent(data)
        if name == STATE_TOPICS_EVENT:
            return TopicsStateEvent(data)
        return StateEvent(name, data)
    return UnknownEvent(name, data)
