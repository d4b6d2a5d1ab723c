"""Long-lived daemon event subscription.

The stream runs on its own connection and its own task. It sends a single
``events.subscribe`` request, then forwards every decoded event frame to an
unbounded queue in wire order. It stops for good when the daemon closes the
stream or a read fails; there is no reconnect.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from swarmctl.daemon.events import DaemonEvent, decode_event
from swarmctl.daemon.ipc_protocol import (
    SUBSCRIBE_REQUEST_ID,
    EventFrame,
    Method,
    decode_frame,
    encode_request,
)
from swarmctl.daemon.transport import DEFAULT_READ_LIMIT, Transport
from swarmctl.models import DEFAULT_EVENT_CHANNELS
from swarmctl.utils.exceptions import SwarmCtlError

logger = logging.getLogger(__name__)

TransportOpener = Callable[[str], Awaitable[Transport]]


class EventStream:
    """Subscription connection feeding a consumer queue."""

    def __init__(
        self,
        endpoint: str,
        channels: list[str] | None = None,
        *,
        read_limit: int = DEFAULT_READ_LIMIT,
        opener: TransportOpener | None = None,
    ):
        """Initialize event stream.

        Args:
            endpoint: Daemon endpoint to subscribe on
            channels: Event channels (defaults to log, network and state)
            read_limit: Maximum accepted line length in bytes
            opener: Coroutine returning a connected transport for an endpoint

        """
        self.endpoint = endpoint
        self.channels = list(channels) if channels else list(DEFAULT_EVENT_CHANNELS)
        self._read_limit = read_limit
        self._opener = opener
        self._queue: asyncio.Queue[DaemonEvent] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._transport: Transport | None = None
        self._closed = False
        self.received = 0

    @property
    def running(self) -> bool:
        """Whether the reader task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def closed(self) -> bool:
        """Whether the stream has ended (it never restarts)."""
        return self._closed

    def start(self) -> None:
        """Spawn the reader task. Calling it again is a no-op."""
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"swarmctl-events-{self.endpoint}"
        )

    def drain(self) -> list[DaemonEvent]:
        """Return every queued event in arrival order without blocking."""
        events: list[DaemonEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return events

    async def wait_closed(self) -> None:
        """Wait until the reader task has finished."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def close(self) -> None:
        """Stop the reader task and close its connection (session shutdown)."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        if self._transport is not None:
            await self._transport.close()
        self._closed = True

    async def _open(self) -> Transport:
        if self._opener is not None:
            return await self._opener(self.endpoint)
        return await Transport.open(self.endpoint, limit=self._read_limit)

    async def _run(self) -> None:
        try:
            self._transport = await self._open()
            await self._transport.write_line(
                encode_request(
                    SUBSCRIBE_REQUEST_ID,
                    Method.EVENTS_SUBSCRIBE,
                    {"channels": self.channels},
                )
            )
            logger.debug("Subscribed to %s on %s", ",".join(self.channels), self.endpoint)
            await self._read_loop(self._transport)
        except SwarmCtlError as e:
            logger.warning("Event stream ended: %s", e)
        finally:
            self._closed = True
            if self._transport is not None:
                await self._transport.close()

    async def _read_loop(self, transport: Transport) -> None:
        while True:
            line = await transport.read_line()
            if not line:
                logger.info("Daemon closed the event stream")
                return

            frame = decode_frame(line)
            if not isinstance(frame, EventFrame):
                # subscribe ack, stray responses, garbage
                continue

            self._queue.put_nowait(decode_event(frame))
            self.received += 1
