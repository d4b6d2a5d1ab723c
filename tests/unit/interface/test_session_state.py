"""Tests for daemon payload parsing and the session state container."""

from __future__ import annotations

from swarmctl.daemon.events import LogEntry
from swarmctl.interface.state import (
    Area,
    FileEntry,
    SessionState,
    TopicRow,
    parse_files_list,
    parse_log_entries,
    parse_overview_topics,
)


class TestParsing:
    """Lenient parsing of overview, file listing and log payloads."""

    def test_overview_rows(self):
        """Test that rows without a name are skipped and fields are typed."""
        overview = {
            "topics": [
                {"name": "movies", "topicKey": "k", "autoJoin": True, "lastJoinedAt": 17, "joined": True, "peers": 3},
                {"topicKey": "orphan"},
                "junk",
                {"name": "books", "peers": "many", "joined": "yes"},
            ]
        }

        assert parse_overview_topics(overview) == [
            TopicRow("movies", key="k", auto_join=True, last_joined_at=17, joined=True, peers=3),
            TopicRow("books"),
        ]

    def test_overview_wrong_shape(self):
        """Test that anything but a topics list yields no rows."""
        assert parse_overview_topics(None) == []
        assert parse_overview_topics({"topics": "nope"}) == []

    def test_files_then_dirs(self):
        """Test that files come before directories and dirs carry no size."""
        listing = {
            "dirs": [{"path": "/data", "merkle_root": "d", "size": 99}],
            "files": [{"path": "/data/a", "size": 5, "chunk_count": 1}, {"size": 1}],
        }

        entries = parse_files_list(listing)

        assert entries == [
            FileEntry("f", "/data/a", size=5, chunks=1),
            FileEntry("d", "/data", merkle_root="d"),
        ]
        assert entries[1].is_dir
        assert not entries[0].is_dir

    def test_log_payload_shapes(self):
        """Test the list and wrapped shapes of a log tail."""
        line = {"ts": 1, "level": "warn", "message": "m"}

        assert parse_log_entries([line]) == [LogEntry(1, "warn", "m")]
        assert parse_log_entries({"lines": [line]}) == [LogEntry(1, "warn", "m")]
        assert parse_log_entries({"entries": [line]}) == [LogEntry(1, "warn", "m")]
        assert parse_log_entries({"other": []}) == []


class TestSessionState:
    """Log buffer and per-area errors."""

    def test_log_buffer_is_bounded(self):
        """Test that the oldest entries are dropped beyond capacity."""
        state = SessionState(logs_max=2)
        for i in range(3):
            state.push_log(LogEntry(ts=i))

        assert [entry.ts for entry in state.logs] == [1, 2]

        state.replace_logs([LogEntry(ts=9)])
        assert [entry.ts for entry in state.logs] == [9]

    def test_errors_per_area(self):
        """Test recording and clearing area errors."""
        state = SessionState()
        state.set_error(Area.FILES, "boom")

        assert state.error(Area.FILES) == "boom"
        assert state.error(Area.NETWORK) is None

        state.clear_error(Area.FILES)
        state.clear_error(Area.FILES)
        assert state.errors == {}
