"""Line-oriented byte stream to a local daemon endpoint.

On POSIX the endpoint is a Unix domain socket path. On Windows it is a named
pipe (``\\\\.\\pipe\\...``) opened through the proactor event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys

from swarmctl.utils.exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_READ_LIMIT = 16 * 1024 * 1024


async def _open_pipe(
    endpoint: str, limit: int
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    protocol = asyncio.StreamReaderProtocol(reader)
    transport, _ = await loop.create_pipe_connection(  # type: ignore[attr-defined]
        lambda: protocol, endpoint
    )
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return reader, writer


class Transport:
    """A connected stream exposing read-line / write-line primitives only."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        endpoint: str = "",
    ):
        """Wrap an already connected reader/writer pair.

        Args:
            reader: Stream reader for the connection
            writer: Stream writer for the connection
            endpoint: Endpoint name, used for messages only

        """
        self.endpoint = endpoint
        self._reader = reader
        self._writer = writer
        self._closed = False

    @classmethod
    async def open(cls, endpoint: str, limit: int = DEFAULT_READ_LIMIT) -> Transport:
        """Connect to a local endpoint.

        Args:
            endpoint: Unix socket path or Windows pipe name
            limit: Maximum accepted line length in bytes

        Returns:
            Connected transport

        Raises:
            TransportError: If the endpoint is unreachable

        """
        try:
            if sys.platform == "win32":
                reader, writer = await _open_pipe(endpoint, limit)
            else:
                reader, writer = await asyncio.open_unix_connection(endpoint, limit=limit)
        except OSError as e:
            msg = f"cannot connect to daemon at {endpoint}: {e}"
            raise TransportError(msg, {"endpoint": endpoint}) from e

        logger.debug("Connected to daemon endpoint %s", endpoint)
        return cls(reader, writer, endpoint)

    @property
    def closed(self) -> bool:
        """Whether :meth:`close` has been called."""
        return self._closed

    async def read_line(self) -> str:
        """Read one line.

        Returns:
            The decoded line including its trailing newline, or ``""`` when
            the peer closed the stream.

        Raises:
            TransportError: On a read failure

        """
        try:
            data = await self._reader.readline()
        except (OSError, asyncio.IncompleteReadError, ValueError) as e:
            # ValueError: line longer than the reader limit
            msg = f"read from daemon failed: {e}"
            raise TransportError(msg, {"endpoint": self.endpoint}) from e
        return data.decode("utf-8", errors="replace")

    async def write_line(self, line: str) -> None:
        """Write ``line`` followed by a newline and flush it.

        Raises:
            TransportError: On a write failure

        """
        try:
            self._writer.write(line.encode("utf-8") + b"\n")
            await self._writer.drain()
        except OSError as e:
            msg = f"write to daemon failed: {e}"
            raise TransportError(msg, {"endpoint": self.endpoint}) from e

    async def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        with contextlib.suppress(OSError):
            await self._writer.wait_closed()
