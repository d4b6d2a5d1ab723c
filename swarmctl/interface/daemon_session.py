"""Daemon session: the object a renderer drives.

Owns the primary RPC connection, the event stream, the job dispatcher and
the topic/file list views. Actions only dispatch background jobs; nothing
visible changes until the foreground calls :meth:`DaemonSession.poll`,
which drains every queue without blocking and applies what it finds.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from swarmctl.config.config import get_config
from swarmctl.daemon.event_stream import EventStream
from swarmctl.daemon.events import (
    DaemonEvent,
    FilesStateEvent,
    LogEvent,
    NetworkEvent,
    NetworkStatsEvent,
    StateEvent,
    TopicsStateEvent,
    UnknownEvent,
)
from swarmctl.daemon.ipc_client import RpcClient
from swarmctl.daemon.ipc_protocol import Method
from swarmctl.daemon.transport import Transport
from swarmctl.interface import operations
from swarmctl.interface.jobs import (
    JobDispatcher,
    JobMessage,
    MessageKind,
    Operation,
    OperationClass,
)
from swarmctl.interface.list_view import ListView
from swarmctl.interface.state import (
    Area,
    FileEntry,
    SessionState,
    TopicRow,
    parse_files_list,
    parse_log_entries,
    parse_overview_topics,
)
from swarmctl.models import Config
from swarmctl.utils.exceptions import ConfigurationError, DisconnectedError, SwarmCtlError

logger = logging.getLogger(__name__)

TransportOpener = Callable[[str], Awaitable[Transport]]

# Area whose last error a job's outcome updates
_JOB_AREAS: dict[OperationClass, Area] = {
    OperationClass.JOIN: Area.NETWORK,
    OperationClass.LEAVE: Area.NETWORK,
    OperationClass.CREATE_TOPIC: Area.NETWORK,
    OperationClass.REMOVE_TOPIC: Area.NETWORK,
    OperationClass.OVERVIEW: Area.NETWORK,
    OperationClass.VERIFY: Area.FILES,
    OperationClass.INFO: Area.FILES,
    OperationClass.ADD_FILES: Area.FILES,
    OperationClass.REMOVE_FILES: Area.FILES,
    OperationClass.FILES: Area.FILES,
    OperationClass.STATUS: Area.STATUS,
    OperationClass.LOGS: Area.LOGS,
}


class DaemonSession:
    """Live view of one daemon plus the actions that can be taken on it."""

    def __init__(
        self,
        endpoint: str | None = None,
        config: Config | None = None,
        *,
        opener: TransportOpener | None = None,
    ):
        """Initialize daemon session.

        Args:
            endpoint: Daemon endpoint (defaults to the configured one)
            config: Configuration (defaults to the global config)
            opener: Coroutine returning a connected transport for an endpoint

        Raises:
            ConfigurationError: If no endpoint is given or configured

        """
        self.config = config or get_config()
        endpoint = endpoint or self.config.daemon.endpoint
        if not endpoint:
            msg = "No daemon endpoint configured (set SWARMFS_IPC_ENDPOINT)"
            raise ConfigurationError(msg)
        self.endpoint = endpoint
        self._opener = opener

        self.state = SessionState(logs_max=self.config.interface.logs_max)
        self.topics_view: ListView[TopicRow, str] = ListView(lambda row: row.name)
        self.files_view: ListView[FileEntry, str] = ListView(lambda entry: entry.path)

        self.client: RpcClient | None = None
        self.dispatcher = JobDispatcher(self._connect)
        # topic snapshots (overview, join, leave) land in dispatch order
        self._topics_seq = 0
        self._topics_applied = 0
        self._topics_pending: dict[OperationClass, tuple[int, int]] = {}
        self.events = EventStream(
            endpoint,
            self.config.interface.event_channels,
            read_limit=self.config.daemon.read_limit,
            opener=opener,
        )
        self._started = False

    async def _connect(self) -> RpcClient:
        if self._opener is not None:
            return RpcClient(await self._opener(self.endpoint))
        return await RpcClient.connect(self.endpoint, limit=self.config.daemon.read_limit)

    @property
    def connected(self) -> bool:
        """Whether the primary connection is usable."""
        return self.client is not None and self.client.connected

    async def start(self, *, subscribe: bool = True, refresh: bool = True) -> None:
        """Connect, subscribe to events and request the initial snapshots.

        A connection failure is recorded as the ``connection`` error rather
        than raised, so the session can still be rendered.

        Args:
            subscribe: Start the event stream
            refresh: Dispatch the initial status, overview and files jobs

        """
        if self._started:
            return
        self._started = True

        try:
            self.client = await self._connect()
            self.state.clear_error(Area.CONNECTION)
            logger.info("Connected to daemon at %s", self.endpoint)
        except SwarmCtlError as e:
            logger.warning("Cannot connect to daemon: %s", e)
            self.state.set_error(Area.CONNECTION, str(e))

        if subscribe:
            self.events.start()
        if refresh:
            self.refresh_status()
            self.refresh_overview()
            self.refresh_files()

    async def close(self) -> None:
        """Close the primary connection and the event stream."""
        await self.events.close()
        if self.client is not None:
            await self.client.close()
        logger.debug("Daemon session closed")

    async def __aenter__(self) -> DaemonSession:
        """Start the session."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the session."""
        await self.close()

    async def call(self, method: str | Method, params: dict[str, Any] | None = None) -> Any:
        """Call the daemon on the primary connection and wait for the result.

        Raises:
            DisconnectedError: If the session never connected or was disconnected
            RpcError: The daemon reported an error

        """
        if self.client is None:
            raise DisconnectedError()
        try:
            result = await self.client.call(method, params)
        except DisconnectedError as e:
            self.state.set_error(Area.CONNECTION, str(e))
            raise
        return result

    async def wait_idle(self) -> None:
        """Wait for every background job to finish (results still need a poll)."""
        await self.dispatcher.wait_idle()

    # Foreground tick

    def poll(self) -> bool:
        """Apply queued events and job results. Never blocks.

        Returns:
            True if anything changed

        """
        changed = False
        for event in self.events.drain():
            self._apply_event(event)
            changed = True

        for op, messages in self.dispatcher.poll_all().items():
            for message in messages:
                self._apply_job_message(op, message)
                changed = True

        self._update_busy()
        return changed

    def _apply_event(self, event: DaemonEvent) -> None:
        if isinstance(event, LogEvent):
            self.state.push_log(event.entry)
        elif isinstance(event, NetworkStatsEvent):
            self.state.network_stats = event.data
        elif isinstance(event, NetworkEvent):
            self.state.network_events[event.name] = event.data
        elif isinstance(event, TopicsStateEvent):
            if isinstance(event.data, dict) and "topics" in event.data:
                self._set_overview(event.data)
            else:
                self.refresh_overview()
        elif isinstance(event, FilesStateEvent):
            if isinstance(event.data, dict) and ("files" in event.data or "dirs" in event.data):
                self._set_files(event.data)
            else:
                self.refresh_files()
        elif isinstance(event, StateEvent):
            self.state.state_events[event.name] = event.data
        elif isinstance(event, UnknownEvent):
            logger.debug("Ignoring unknown daemon event %s", event.name)
            self.state.unknown_events += 1

    def _apply_job_message(self, op: OperationClass, message: JobMessage) -> None:
        area = _JOB_AREAS[op]

        if message.kind is MessageKind.PROGRESS:
            if op is OperationClass.VERIFY:
                self.state.verify_progress = (message.done, message.total)
            return

        if op is OperationClass.INFO and not self._still_focused():
            return

        if message.kind is MessageKind.FAILED:
            logger.debug("%s job failed: %s", op.value, message.error)
            self.state.set_error(area, message.error or "operation failed")
            if op is OperationClass.VERIFY:
                self.state.verify_progress = None
            return

        result = message.result
        if op is OperationClass.INFO:
            self.state.file_info = result.info
        elif op in (OperationClass.JOIN, OperationClass.LEAVE):
            if self._topics_in_order(op, message):
                self._set_overview(result.overview)
        elif op is OperationClass.OVERVIEW:
            if self._topics_in_order(op, message):
                self._set_overview(result)
        elif op is OperationClass.FILES:
            self._set_files(result)
        elif op is OperationClass.STATUS:
            self.state.status = result
        elif op is OperationClass.LOGS:
            self.state.replace_logs(parse_log_entries(result))
        elif op is OperationClass.VERIFY:
            self.state.last_verify = result
            self.state.verify_progress = None
        elif op in (OperationClass.CREATE_TOPIC, OperationClass.REMOVE_TOPIC):
            self.refresh_overview()
        elif op in (OperationClass.ADD_FILES, OperationClass.REMOVE_FILES):
            self.refresh_files()
        self.state.clear_error(area)

    def _still_focused(self) -> bool:
        job = self.dispatcher.job(OperationClass.INFO)
        if job is None or not job.targets:
            return False
        return job.targets[0] == self.state.focused_path

    def _dispatch_topics(self, op: OperationClass, targets: list[str], operation: Operation) -> int:
        generation = self.dispatcher.dispatch(op, targets, operation)
        self._topics_seq += 1
        self._topics_pending[op] = (generation, self._topics_seq)
        return generation

    def _topics_in_order(self, op: OperationClass, message: JobMessage) -> bool:
        """Whether no topic snapshot dispatched later than this one was applied."""
        pending = self._topics_pending.pop(op, None)
        if pending is None or pending[0] != message.generation:
            return False
        if pending[1] < self._topics_applied:
            logger.debug("Dropping %s snapshot older than the one shown", op.value)
            return False
        self._topics_applied = pending[1]
        return True

    def _set_overview(self, overview: Any) -> None:
        self.state.overview = overview
        self.topics_view.set_items(parse_overview_topics(overview))

    def _set_files(self, listing: Any) -> None:
        self.state.files_listing = listing
        self.files_view.set_items(parse_files_list(listing))
        self._sync_focus()

    def _update_busy(self) -> None:
        labels = []
        for op, verb in (
            (OperationClass.JOIN, "joining"),
            (OperationClass.LEAVE, "leaving"),
            (OperationClass.CREATE_TOPIC, "creating"),
            (OperationClass.REMOVE_TOPIC, "removing topic"),
            (OperationClass.VERIFY, "verifying"),
            (OperationClass.ADD_FILES, "adding"),
            (OperationClass.REMOVE_FILES, "removing"),
        ):
            job = self.dispatcher.job(op)
            if job is not None and not job.finished:
                labels.append(f"{verb} {', '.join(job.targets)}".rstrip())
        self.state.busy = "; ".join(labels) or None

    # Actions

    def refresh_overview(self) -> int:
        """Re-read the topic overview."""
        return self._dispatch_topics(OperationClass.OVERVIEW, [], operations.overview)

    def refresh_files(self) -> int:
        """Re-read the shared file list."""
        return self.dispatcher.dispatch(OperationClass.FILES, [], operations.files)

    def refresh_status(self) -> int:
        """Re-read the node status."""
        return self.dispatcher.dispatch(OperationClass.STATUS, [], operations.status)

    def refresh_logs(self, lines: int | None = None) -> int:
        """Replace the log buffer with the daemon's most recent entries."""
        lines = lines or self.config.interface.logs_tail_lines
        return self.dispatcher.dispatch(OperationClass.LOGS, [], operations.logs(lines))

    def _topic_target(self, name: str | None) -> str | None:
        if name is not None:
            return name
        return self.topics_view.focused_key

    def _topic_action(self, op: OperationClass, name: str | None, operation: Operation) -> int | None:
        target = self._topic_target(name)
        if target is None:
            return None
        self.state.clear_error(Area.NETWORK)
        generation = self._dispatch_topics(op, [target], operation)
        self._update_busy()
        return generation

    def join_topic(self, name: str | None = None) -> int | None:
        """Join ``name`` (or the focused topic) in the background."""
        return self._topic_action(OperationClass.JOIN, name, operations.join)

    def leave_topic(self, name: str | None = None) -> int | None:
        """Leave ``name`` (or the focused topic) in the background."""
        return self._topic_action(OperationClass.LEAVE, name, operations.leave)

    def create_topic(
        self,
        name: str,
        auto_join: bool = True,
        password: str | None = None,
    ) -> int | None:
        """Create a topic; an empty name is rejected without contacting the daemon."""
        name = name.strip()
        if not name:
            self.state.set_error(Area.NETWORK, "topic name required")
            return None
        self.state.clear_error(Area.NETWORK)
        generation = self.dispatcher.dispatch(
            OperationClass.CREATE_TOPIC,
            [name],
            operations.create_topic(auto_join=auto_join, password=password),
        )
        self._update_busy()
        return generation

    def remove_topic(self, name: str | None = None) -> int | None:
        """Remove ``name`` (or the focused topic)."""
        target = self._topic_target(name)
        if target is None:
            return None
        generation = self.dispatcher.dispatch(
            OperationClass.REMOVE_TOPIC, [target], operations.remove_topic
        )
        self._update_busy()
        return generation

    def _file_targets(self, paths: list[str] | None) -> list[str]:
        if paths is not None:
            return list(paths)
        return self.files_view.targets()

    def verify_files(self, paths: list[str] | None = None) -> int | None:
        """Verify the given paths, else the selection, else the focused file."""
        targets = self._file_targets(paths)
        if not targets:
            return None
        self.state.clear_error(Area.FILES)
        self.state.verify_progress = (0, len(targets))
        generation = self.dispatcher.dispatch(OperationClass.VERIFY, targets, operations.verify)
        self._update_busy()
        return generation

    def remove_files(self, paths: list[str] | None = None) -> int | None:
        """Stop sharing the given paths, else the selection, else the focused file."""
        targets = self._file_targets(paths)
        if not targets:
            return None
        generation = self.dispatcher.dispatch(
            OperationClass.REMOVE_FILES, targets, operations.remove_files
        )
        self._update_busy()
        return generation

    def add_files(self, paths: list[str]) -> int | None:
        """Start sharing local paths."""
        if not paths:
            return None
        generation = self.dispatcher.dispatch(
            OperationClass.ADD_FILES, list(paths), operations.add_files
        )
        self._update_busy()
        return generation

    def focus_file(self, row: int | None) -> int | None:
        """Focus a file row and fetch its details when the focused path changes."""
        self.files_view.set_focus(row)
        return self._sync_focus()

    def _sync_focus(self) -> int | None:
        path = self.files_view.focused_key
        if path == self.state.focused_path:
            return None
        self.state.focused_path = path
        self.state.file_info = None
        if path is None:
            return None
        return self.dispatcher.dispatch(OperationClass.INFO, [path], operations.info)
