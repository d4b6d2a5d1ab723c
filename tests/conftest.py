"""Pytest configuration and shared fixtures for swarmctl tests."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable

import pytest

from swarmctl.config.config import reset_config


def pytest_configure(config):
    """Register project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("asyncio", "marks tests as async (deselect with '-m \"not asyncio\"')"),
        ("unit", "marks tests as unit tests"),
        ("integration", "marks tests as integration tests"),
        ("cli", "marks tests as CLI tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Keep SWARMFS_* variables of the developer's shell out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("SWARMFS_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    # setup_logging detaches the package logger; let caplog see it again
    package_logger = logging.getLogger("swarmctl")
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


class FakeTransport:
    """In-memory stand-in for :class:`swarmctl.daemon.transport.Transport`.

    Lines queued with :meth:`feed` are returned by ``read_line`` in order.
    Once the script is exhausted ``read_line`` reports end of stream, unless
    ``hold_open`` is set, in which case it waits for more lines.
    """

    def __init__(self, lines: list[str] | None = None, endpoint: str = "fake", hold_open: bool = False):
        self.endpoint = endpoint
        self.written: list[str] = []
        self.hold_open = hold_open
        self._lines: asyncio.Queue[str] = asyncio.Queue()
        self._closed = False
        for line in lines or []:
            self.feed(line)

    def feed(self, line: str | dict[str, Any]) -> None:
        if isinstance(line, dict):
            line = json.dumps(line)
        self._lines.put_nowait(line if line.endswith("\n") else line + "\n")

    def end(self) -> None:
        """Signal end of stream to a reader waiting on a held-open transport."""
        self._lines.put_nowait("")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def requests(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.written]

    async def read_line(self) -> str:
        if self._lines.empty() and not self.hold_open:
            return ""
        return await self._lines.get()

    async def write_line(self, line: str) -> None:
        self.written.append(line)

    async def close(self) -> None:
        self._closed = True


@pytest.fixture
def fake_transport():
    """Factory for scripted fake transports."""

    def _make(*lines: str | dict[str, Any], hold_open: bool = False) -> FakeTransport:
        transport = FakeTransport(hold_open=hold_open)
        for line in lines:
            transport.feed(line)
        return transport

    return _make


def response(request_id: str, result: Any = None, ok: bool = True, error: str | None = None) -> dict[str, Any]:
    """Build a response frame."""
    frame: dict[str, Any] = {"id": request_id, "type": "res", "ok": ok}
    if ok:
        frame["result"] = result
    elif error is not None:
        frame["error"] = {"message": error}
    return frame


def event(name: str, data: Any = None) -> dict[str, Any]:
    """Build an event frame."""
    return {"type": "evt", "event": name, "data": data}


class DaemonMethodError(Exception):
    """Raised by fake daemon handlers to answer with ``ok: false``."""


Handler = Callable[[dict[str, Any]], Any]


class FakeDaemon:
    """A small swarmfs-like daemon on a real Unix socket.

    Handlers map a method name to a (sync or async) callable receiving the
    request params. Raising :class:`DaemonMethodError` answers with an error
    response. Every request is recorded in ``calls``.
    """

    def __init__(self, path: str):
        self.path = path
        self.handlers: dict[str, Handler] = {"daemon.ping": lambda params: {"version": "test"}}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.subscribers: list[asyncio.StreamWriter] = []
        self.subscribed = asyncio.Event()
        self._server: asyncio.AbstractServer | None = None
        self._writers: list[asyncio.StreamWriter] = []

    def on(self, method: str, handler: Handler | Any) -> None:
        """Register a handler, or a constant result."""
        self.handlers[method] = handler if callable(handler) else (lambda params, _r=handler: _r)

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._handle, path=self.path)

    async def stop(self) -> None:
        for writer in self._writers:
            writer.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def push(self, name: str, data: Any = None) -> None:
        """Send an event to every subscribed connection."""
        line = (json.dumps(event(name, data)) + "\n").encode()
        for writer in self.subscribers:
            writer.write(line)
            await writer.drain()

    async def close_subscribers(self) -> None:
        for writer in self.subscribers:
            writer.close()
        self.subscribers.clear()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.append(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    return
                request = json.loads(line)
                method = request["method"]
                params = request.get("params") or {}
                self.calls.append((method, params))

                if method == "events.subscribe":
                    self.subscribers.append(writer)
                    frame = response(request["id"], {"subscribed": params.get("channels", [])})
                    writer.write((json.dumps(frame) + "\n").encode())
                    await writer.drain()
                    self.subscribed.set()
                    continue

                handler = self.handlers.get(method)
                if handler is None:
                    frame = response(request["id"], ok=False, error=f"unknown method: {method}")
                else:
                    try:
                        result = handler(params)
                        if asyncio.iscoroutine(result):
                            result = await result
                        frame = response(request["id"], result)
                    except DaemonMethodError as e:
                        frame = response(request["id"], ok=False, error=str(e))
                writer.write((json.dumps(frame) + "\n").encode())
                await writer.drain()
        except (ConnectionError, asyncio.CancelledError):
            return


@pytest.fixture
async def fake_daemon():
    """A running fake daemon listening on a short Unix socket path."""
    if sys.platform == "win32":
        pytest.skip("Unix domain sockets are not available on Windows")

    # AF_UNIX paths are limited to ~100 bytes; pytest tmp_path can be longer
    tmpdir = tempfile.mkdtemp(prefix="swarm")
    daemon = FakeDaemon(str(Path(tmpdir) / "d.sock"))
    await daemon.start()
    try:
        yield daemon
    finally:
        await daemon.stop()
        shutil.rmtree(tmpdir, ignore_errors=True)
