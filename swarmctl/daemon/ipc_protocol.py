"""IPC protocol definitions for daemon communication.

Defines constants, frame models and the codec for the newline-delimited
JSON protocol spoken over the daemon's local socket.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, ValidationError

from swarmctl.utils.exceptions import ProtocolError

# Frame type discriminators
FRAME_REQUEST = "req"
FRAME_RESPONSE = "res"
FRAME_EVENT = "evt"

DEFAULT_RPC_ERROR = "RPC error"
SUBSCRIBE_REQUEST_ID = "1"


class Method(str, Enum):
    """Daemon RPC methods."""

    DAEMON_PING = "daemon.ping"
    DAEMON_SHUTDOWN = "daemon.shutdown"
    NODE_STATUS = "node.status"
    NETWORK_OVERVIEW = "network.overview"
    NETWORK_STATS = "network.stats"
    TOPIC_LIST = "topic.list"
    TOPIC_JOIN = "topic.join"
    TOPIC_LEAVE = "topic.leave"
    TOPIC_CREATE = "topic.create"
    TOPIC_REMOVE = "topic.rm"
    FILES_LIST = "files.list"
    FILES_INFO = "files.info"
    FILES_VERIFY = "files.verify"
    FILES_REMOVE = "files.remove"
    FILES_ADD = "files.add"
    LOGS_TAIL = "logs.tail"
    EVENTS_SUBSCRIBE = "events.subscribe"


class RequestFrame(BaseModel):
    """Request sent to the daemon."""

    id: str = Field(..., description="Request id, unique per connection")
    type: Literal["req"] = Field(FRAME_REQUEST, description="Frame type")
    method: str = Field(..., description="Dotted method name")
    params: dict[str, Any] = Field(default_factory=dict, description="Method parameters")


class ResponseFrame(BaseModel):
    """Response to a request."""

    id: str | None = Field(None, description="Id of the request being answered")
    type: Literal["res"] = Field(FRAME_RESPONSE, description="Frame type")
    ok: bool = Field(False, strict=True, description="Whether the request succeeded")
    result: Any = Field(None, description="Result payload when ok")
    error: dict[str, Any] | None = Field(None, description="Error object when not ok")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ResponseFrame:
        """Build a response from a decoded ``res`` object without rejecting it.

        Only a literal ``true`` counts as success; a missing or mistyped
        ``error`` falls back to the generic message. A response for the
        waiting id therefore always ends the wait.
        """
        raw_id = payload.get("id")
        error = payload.get("error")
        return cls(
            id=raw_id if isinstance(raw_id, str) else None,
            ok=payload.get("ok") is True,
            result=payload.get("result"),
            error=error if isinstance(error, dict) else None,
        )

    def error_message(self) -> str:
        """Return the daemon-supplied error message or a generic one."""
        if self.error:
            message = self.error.get("message")
            if isinstance(message, str) and message:
                return message
        return DEFAULT_RPC_ERROR


class EventFrame(BaseModel):
    """Event pushed by the daemon on a subscribed connection."""

    type: Literal["evt"] = Field(FRAME_EVENT, description="Frame type")
    event: str = Field("", description="Dotted event name")
    data: Any = Field(None, description="Event payload")


Frame = Union[ResponseFrame, EventFrame]


def encode_request(request_id: str, method: str | Method, params: dict[str, Any] | None = None) -> str:
    """Serialize a request to a single JSON line (without the newline).

    Raises:
        ProtocolError: If ``params`` is not JSON serializable

    """
    frame = RequestFrame(
        id=request_id,
        method=method.value if isinstance(method, Method) else method,
        params=params or {},
    )
    try:
        return json.dumps(frame.model_dump(), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        msg = f"cannot encode {frame.method} request: {e}"
        raise ProtocolError(msg) from e


def decode_frame(line: str) -> Frame | None:
    """Decode one line into a response or event frame.

    Blank lines, unparsable JSON, unknown frame types and malformed events
    decode to ``None``; callers treat that as "not my message" and keep
    reading. Any ``res`` object decodes to a response, however odd its
    other fields, so a caller waiting on its id is always answered.
    """
    text = line.strip()
    if not text:
        return None

    try:
        payload = json.loads(text)
    except ValueError:
        return None

    if not isinstance(payload, dict):
        return None

    frame_type = payload.get("type")
    if frame_type == FRAME_RESPONSE:
        return ResponseFrame.from_payload(payload)
    if frame_type == FRAME_EVENT:
        try:
            return EventFrame.model_validate(payload)
        except ValidationError:
            return None
    return None
