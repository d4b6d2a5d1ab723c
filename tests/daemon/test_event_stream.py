"""Tests for the daemon event subscription stream."""

from __future__ import annotations

import asyncio

import pytest

from swarmctl.daemon.event_stream import EventStream
from swarmctl.daemon.events import LogEvent, NetworkStatsEvent, StateEvent, UnknownEvent
from swarmctl.utils.exceptions import TransportError
from tests.conftest import FakeTransport, event


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            msg = "condition not met in time"
            raise AssertionError(msg)
        await asyncio.sleep(0.01)


def _stream_over(transport: FakeTransport, channels=None) -> EventStream:
    async def opener(endpoint: str) -> FakeTransport:
        return transport

    return EventStream("fake", channels, opener=opener)


class TestEventStream:
    """Subscription, ordering and termination."""

    @pytest.mark.asyncio
    async def test_subscribe_request(self):
        """Test the single subscription request with default channels."""
        transport = FakeTransport()
        stream = _stream_over(transport)

        stream.start()
        await stream.wait_closed()

        assert transport.requests == [
            {
                "id": "1",
                "type": "req",
                "method": "events.subscribe",
                "params": {"channels": ["log", "network", "state"]},
            }
        ]

    @pytest.mark.asyncio
    async def test_events_in_wire_order(self):
        """Test that events are queued in arrival order and the rest ignored."""
        transport = FakeTransport(
            [
                '{"id": "1", "type": "res", "ok": true, "result": {}}',
                '{"type": "evt", "event": "log", "data": {"message": "one"}}',
                "garbage",
                '{"type": "evt", "event": "network.stats", "data": {"peers": 1}}',
                "",
                '{"type": "evt", "event": "state.unknown_future_kind", "data": 1}',
                '{"type": "evt", "event": "brand.new", "data": null}',
            ]
        )
        stream = _stream_over(transport, ["log"])

        stream.start()
        await stream.wait_closed()
        events = stream.drain()

        assert [type(e) for e in events] == [LogEvent, NetworkStatsEvent, StateEvent, UnknownEvent]
        assert events[0].entry.message == "one"
        assert stream.received == 4
        assert transport.requests[0]["params"] == {"channels": ["log"]}

    @pytest.mark.asyncio
    async def test_stream_end_is_permanent(self):
        """Test that the stream closes for good when the daemon hangs up."""
        transport = FakeTransport()
        stream = _stream_over(transport)

        stream.start()
        await stream.wait_closed()

        assert stream.closed
        assert not stream.running
        assert transport.closed
        assert stream.drain() == []

    @pytest.mark.asyncio
    async def test_connect_failure_closes_stream(self):
        """Test that an unreachable endpoint ends the stream without raising."""

        async def opener(endpoint: str):
            raise TransportError("cannot connect to daemon at fake")

        stream = EventStream("fake", opener=opener)
        stream.start()
        await stream.wait_closed()

        assert stream.closed
        assert stream.drain() == []

    @pytest.mark.asyncio
    async def test_drain_never_blocks(self):
        """Test drain on a live stream with nothing queued."""
        transport = FakeTransport(hold_open=True)
        stream = _stream_over(transport)
        stream.start()
        await asyncio.sleep(0)

        assert stream.drain() == []
        assert stream.running

        transport.feed(event("log", {"message": "late"}))
        await _wait_for(lambda: stream.received == 1)
        assert [e.entry.message for e in stream.drain()] == ["late"]

        await stream.close()
        assert stream.closed
        assert transport.closed

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self):
        """Test that only one reader task is ever spawned."""
        transport = FakeTransport(hold_open=True)
        stream = _stream_over(transport)

        stream.start()
        task = stream._task
        stream.start()

        assert stream._task is task
        await stream.close()

    @pytest.mark.asyncio
    async def test_live_daemon(self, fake_daemon):
        """Test a subscription against a daemon on a real socket."""
        stream = EventStream(fake_daemon.path)
        stream.start()
        await asyncio.wait_for(fake_daemon.subscribed.wait(), timeout=2)

        await fake_daemon.push("log", {"ts": 1, "level": "info", "message": "a"})
        await fake_daemon.push("network.stats", {"peers": 3})
        await _wait_for(lambda: stream.received == 2)

        events = stream.drain()
        assert isinstance(events[0], LogEvent)
        assert events[1] == NetworkStatsEvent({"peers": 3})

        await fake_daemon.close_subscribers()
        await asyncio.wait_for(stream.wait_closed(), timeout=2)
        assert stream.closed
        assert fake_daemon.calls == [("events.subscribe", {"channels": ["log", "network", "state"]})]
