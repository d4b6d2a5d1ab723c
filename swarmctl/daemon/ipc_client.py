"""IPC client for daemon communication.

One request/response connection to the daemon. Calls are serialized on the
connection; each waits for the response carrying its own id and skips every
other frame.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from swarmctl.daemon.ipc_protocol import (
    Method,
    ResponseFrame,
    decode_frame,
    encode_request,
)
from swarmctl.daemon.transport import DEFAULT_READ_LIMIT, Transport
from swarmctl.utils.exceptions import DisconnectedError, RpcError, TransportError

logger = logging.getLogger(__name__)


class RpcClient:
    """Request/response client bound to a single daemon connection."""

    def __init__(self, transport: Transport):
        """Initialize RPC client.

        Args:
            transport: Connected transport owned by this client

        """
        self._transport = transport
        self._next_id = 1
        self._lock = asyncio.Lock()
        self._disconnected = False

    @classmethod
    async def connect(cls, endpoint: str, limit: int = DEFAULT_READ_LIMIT) -> RpcClient:
        """Open a new connection and wrap it in a client.

        Raises:
            TransportError: If the endpoint is unreachable

        """
        transport = await Transport.open(endpoint, limit=limit)
        return cls(transport)

    @property
    def endpoint(self) -> str:
        """Endpoint this client is connected to."""
        return self._transport.endpoint

    @property
    def connected(self) -> bool:
        """False once the daemon disconnected or the client was closed."""
        return not self._disconnected and not self._transport.closed

    async def __aenter__(self) -> RpcClient:
        """Enter async context."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the connection on exit."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying connection."""
        await self._transport.close()

    async def call(self, method: str | Method, params: dict[str, Any] | None = None) -> Any:
        """Send one request and wait for its response.

        Args:
            method: Dotted method name
            params: Method parameters (JSON object)

        Returns:
            The response ``result`` (``None`` if absent)

        Raises:
            RpcError: The daemon answered with ``ok: false``
            DisconnectedError: The daemon closed the connection
            TransportError: The connection failed

        """
        name = method.value if isinstance(method, Method) else method
        async with self._lock:
            if not self.connected:
                raise DisconnectedError()

            request_id = str(self._next_id)
            self._next_id += 1

            await self._transport.write_line(encode_request(request_id, name, params))
            response = await self._read_response(request_id)

        if response.ok:
            return response.result
        raise RpcError(response.error_message(), method=name)

    async def _read_response(self, request_id: str) -> ResponseFrame:
        while True:
            try:
                line = await self._transport.read_line()
            except TransportError:
                self._disconnected = True
                raise

            if not line:
                self._disconnected = True
                logger.debug("Daemon closed connection while waiting for id %s", request_id)
                raise DisconnectedError()

            frame = decode_frame(line)
            if not isinstance(frame, ResponseFrame):
                continue
            if frame.id != request_id:
                logger.debug("Skipping response id %s (waiting for %s)", frame.id, request_id)
                continue
            return frame

    # Daemon methods

    async def ping(self) -> dict[str, Any]:
        """Check the daemon is alive; returns version, pid and endpoint."""
        return await self.call(Method.DAEMON_PING)

    async def shutdown_daemon(self) -> Any:
        """Ask the daemon to shut down."""
        return await self.call(Method.DAEMON_SHUTDOWN)

    async def node_status(self) -> dict[str, Any]:
        """Get the node status snapshot."""
        return await self.call(Method.NODE_STATUS)

    async def network_overview(self) -> dict[str, Any]:
        """Get the network overview (topics with peer counts)."""
        return await self.call(Method.NETWORK_OVERVIEW)

    async def network_stats(self) -> dict[str, Any]:
        """Get current network statistics."""
        return await self.call(Method.NETWORK_STATS)

    async def topic_list(self) -> Any:
        """List known topics."""
        return await self.call(Method.TOPIC_LIST)

    async def topic_join(self, name: str) -> Any:
        """Join a topic."""
        return await self.call(Method.TOPIC_JOIN, {"name": name})

    async def topic_leave(self, name: str) -> Any:
        """Leave a topic."""
        return await self.call(Method.TOPIC_LEAVE, {"name": name})

    async def topic_create(
        self,
        name: str,
        auto_join: bool = True,
        password: str | None = None,
    ) -> Any:
        """Create a topic.

        Args:
            name: Topic name
            auto_join: Join the topic automatically on daemon start
            password: Optional topic password

        """
        return await self.call(
            Method.TOPIC_CREATE,
            {"name": name, "autoJoin": auto_join, "password": password},
        )

    async def topic_remove(self, name: str) -> Any:
        """Remove a topic."""
        return await self.call(Method.TOPIC_REMOVE, {"name": name})

    async def files_list(self) -> dict[str, Any]:
        """List shared files and directories."""
        return await self.call(Method.FILES_LIST)

    async def files_info(self, path: str) -> Any:
        """Get details for one shared path."""
        return await self.call(Method.FILES_INFO, {"path": path})

    async def files_verify(self, path: str) -> Any:
        """Verify one shared path against its stored hashes."""
        return await self.call(Method.FILES_VERIFY, {"path": path})

    async def files_remove(self, path: str) -> Any:
        """Stop sharing a path."""
        return await self.call(Method.FILES_REMOVE, {"path": path})

    async def files_add(self, paths: list[str]) -> Any:
        """Start sharing local paths."""
        return await self.call(Method.FILES_ADD, {"paths": list(paths)})

    async def logs_tail(self, lines: int = 200) -> list[Any]:
        """Get the most recent daemon log entries."""
        return await self.call(Method.LOGS_TAIL, {"lines": lines})
