"""Consumer-visible session state and daemon payload parsing."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from swarmctl.daemon.events import LogEntry
from swarmctl.interface.operations import VerifyReport


class Area(str, Enum):
    """Feature areas whose last error is tracked."""

    CONNECTION = "connection"
    NETWORK = "network"
    FILES = "files"
    STATUS = "status"
    LOGS = "logs"


@dataclass(frozen=True)
class TopicRow:
    """One topic from the network overview."""

    name: str
    key: str | None = None
    auto_join: bool = False
    last_joined_at: int | None = None
    joined: bool = False
    peers: int = 0


@dataclass(frozen=True)
class FileEntry:
    """One shared file (``kind == "f"``) or directory (``kind == "d"``)."""

    kind: str
    path: str
    size: int | None = None
    chunks: int | None = None
    merkle_root: str | None = None

    @property
    def is_dir(self) -> bool:
        """Whether the entry is a directory."""
        return self.kind == "d"


def _opt_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parse_overview_topics(overview: Any) -> list[TopicRow]:
    """Parse ``network.overview`` into topic rows.

    Rows without a string ``name`` are skipped.
    """
    if not isinstance(overview, dict):
        return []
    topics = overview.get("topics")
    if not isinstance(topics, list):
        return []

    rows: list[TopicRow] = []
    for topic in topics:
        if not isinstance(topic, dict) or not isinstance(topic.get("name"), str):
            continue
        rows.append(
            TopicRow(
                name=topic["name"],
                key=_opt_str(topic.get("topicKey")),
                auto_join=topic.get("autoJoin") is True,
                last_joined_at=_opt_int(topic.get("lastJoinedAt")),
                joined=topic.get("joined") is True,
                peers=_opt_int(topic.get("peers")) or 0,
            )
        )
    return rows


def parse_files_list(listing: Any) -> list[FileEntry]:
    """Parse ``files.list`` into entries, files first then directories."""
    if not isinstance(listing, dict):
        return []

    entries: list[FileEntry] = []
    for kind, key in (("f", "files"), ("d", "dirs")):
        items = listing.get(key)
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("path"), str):
                continue
            entries.append(
                FileEntry(
                    kind=kind,
                    path=item["path"],
                    size=_opt_int(item.get("size")) if kind == "f" else None,
                    chunks=_opt_int(item.get("chunk_count")) if kind == "f" else None,
                    merkle_root=_opt_str(item.get("merkle_root")),
                )
            )
    return entries


def parse_log_entries(payload: Any) -> list[LogEntry]:
    """Parse a ``logs.tail`` result (a list, or ``{lines|entries: [...]}``)."""
    if isinstance(payload, dict):
        payload = payload.get("lines", payload.get("entries"))
    if not isinstance(payload, list):
        return []
    return [LogEntry.from_data(item) for item in payload]


@dataclass
class SessionState:
    """Everything a renderer reads to paint the daemon view."""

    logs_max: int = 5000
    logs: deque[LogEntry] = field(init=False)
    network_stats: Any = None
    overview: Any = None
    status: Any = None
    files_listing: Any = None
    verify_progress: tuple[int, int] | None = None
    last_verify: VerifyReport | None = None
    focused_path: str | None = None
    file_info: Any = None
    busy: str | None = None
    errors: dict[Area, str] = field(default_factory=dict)
    state_events: dict[str, Any] = field(default_factory=dict)
    network_events: dict[str, Any] = field(default_factory=dict)
    unknown_events: int = 0

    def __post_init__(self) -> None:
        """Create the bounded log buffer."""
        self.logs = deque(maxlen=self.logs_max)

    def push_log(self, entry: LogEntry) -> None:
        """Append a log entry, dropping the oldest beyond capacity."""
        self.logs.append(entry)

    def replace_logs(self, entries: list[LogEntry]) -> None:
        """Replace the log buffer with a fresh tail."""
        self.logs.clear()
        self.logs.extend(entries)

    def set_error(self, area: Area, message: str) -> None:
        """Record the last error of an area."""
        self.errors[area] = message

    def clear_error(self, area: Area) -> None:
        """Forget the last error of an area."""
        self.errors.pop(area, None)

    def error(self, area: Area) -> str | None:
        """Last error of an area, if any."""
        return self.errors.get(area)
