"""Daemon connection layer for swarmctl.

- Transport: line-oriented stream to the daemon's local endpoint
- RpcClient: serialized request/response calls with id correlation
- EventStream: subscription connection feeding a consumer queue
"""

from swarmctl.daemon.event_stream import EventStream
from swarmctl.daemon.events import DaemonEvent, LogEntry, decode_event
from swarmctl.daemon.ipc_client import RpcClient
from swarmctl.daemon.transport import Transport

__all__ = [
    "DaemonEvent",
    "EventStream",
    "LogEntry",
    "RpcClient",
    "Transport",
    "decode_event",
]
