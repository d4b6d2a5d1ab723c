"""Generation-guarded background jobs.

Every operation class owns a generation counter, a job record and a result
queue. Dispatching bumps the counter and runs the operation on its own task
over its own daemon connection. Each message the task emits carries the
generation it was started with; when the foreground polls a class, messages
from a superseded generation are dropped, so a slow old job can never
overwrite what a newer one produced.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from swarmctl.daemon.ipc_client import RpcClient
from swarmctl.utils.exceptions import SwarmCtlError
from swarmctl.utils.logging_config import LoggingContext

logger = logging.getLogger(__name__)


class OperationClass(str, Enum):
    """Kinds of background operations; each has an independent generation."""

    JOIN = "join"
    LEAVE = "leave"
    CREATE_TOPIC = "create_topic"
    REMOVE_TOPIC = "remove_topic"
    VERIFY = "verify"
    INFO = "info"
    ADD_FILES = "add_files"
    REMOVE_FILES = "remove_files"
    OVERVIEW = "overview"
    FILES = "files"
    STATUS = "status"
    LOGS = "logs"


class JobStatus(str, Enum):
    """Lifecycle of a job."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MessageKind(str, Enum):
    """Kinds of messages a job task emits."""

    PROGRESS = "progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Job:
    """The most recently dispatched job of one operation class."""

    op: OperationClass
    generation: int
    targets: list[str] = field(default_factory=list)
    status: JobStatus = JobStatus.RUNNING
    result: Any = None
    error: str | None = None
    progress: tuple[int, int] | None = None

    @property
    def finished(self) -> bool:
        """Whether a terminal message has been applied."""
        return self.status is not JobStatus.RUNNING


@dataclass(frozen=True)
class JobMessage:
    """One message from a job task to the foreground."""

    op: OperationClass
    generation: int
    kind: MessageKind
    done: int = 0
    total: int = 0
    result: Any = None
    error: str | None = None


class ProgressReporter(Protocol):
    """Callback an operation uses to report ``(done, total)``."""

    def __call__(self, done: int, total: int) -> None: ...


Operation = Callable[[RpcClient, list[str], ProgressReporter], Awaitable[Any]]
ConnectionFactory = Callable[[], Awaitable[RpcClient]]


class GenerationGuardedTask:
    """Counter, queue and job record for one operation class."""

    def __init__(self, op: OperationClass):
        """Initialize with generation 0 (nothing dispatched yet)."""
        self.op = op
        self.generation = 0
        self.queue: asyncio.Queue[JobMessage] = asyncio.Queue()
        self.job: Job | None = None

    def next_generation(self, targets: list[str]) -> int:
        """Bump the generation and record a fresh running job."""
        self.generation += 1
        self.job = Job(self.op, self.generation, list(targets))
        return self.generation

    def drain(self) -> list[JobMessage]:
        """Take queued messages of the current generation; drop the rest."""
        applied: list[JobMessage] = []
        while True:
            try:
                message = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return applied

            if message.generation != self.generation or self.job is None:
                logger.debug(
                    "Dropping stale %s message (generation %d, current %d)",
                    self.op.value,
                    message.generation,
                    self.generation,
                )
                continue

            self._apply(message)
            applied.append(message)

    def _apply(self, message: JobMessage) -> None:
        job = self.job
        assert job is not None
        if message.kind is MessageKind.PROGRESS:
            job.progress = (message.done, message.total)
        elif message.kind is MessageKind.SUCCEEDED:
            job.status = JobStatus.SUCCEEDED
            job.result = message.result
        else:
            job.status = JobStatus.FAILED
            job.error = message.error


class JobDispatcher:
    """Runs operations in the background, one generation-guarded slot per class."""

    def __init__(self, connect: ConnectionFactory):
        """Initialize job dispatcher.

        Args:
            connect: Coroutine opening a new daemon connection for each job

        """
        self._connect = connect
        self._slots = {op: GenerationGuardedTask(op) for op in OperationClass}
        self._tasks: set[asyncio.Task] = set()

    def current_generation(self, op: OperationClass) -> int:
        """Latest generation dispatched for ``op`` (0 if none)."""
        return self._slots[op].generation

    def job(self, op: OperationClass) -> Job | None:
        """The current job of ``op``."""
        return self._slots[op].job

    def is_running(self, op: OperationClass) -> bool:
        """Whether the current job of ``op`` has not finished yet."""
        job = self._slots[op].job
        return job is not None and not job.finished

    @property
    def pending(self) -> int:
        """Number of job tasks still running, superseded ones included."""
        return len(self._tasks)

    def dispatch(
        self,
        op: OperationClass,
        targets: list[str],
        operation: Operation,
    ) -> int:
        """Start ``operation`` in the background.

        Args:
            op: Operation class the job belongs to
            targets: Keys the operation acts on
            operation: Coroutine function ``(client, targets, report)``

        Returns:
            The generation assigned to the new job

        """
        slot = self._slots[op]
        generation = slot.next_generation(targets)
        task = asyncio.get_running_loop().create_task(
            self._run(slot, generation, list(targets), operation),
            name=f"swarmctl-job-{op.value}-{generation}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Dispatched %s generation %d (%d targets)", op.value, generation, len(targets))
        return generation

    def poll(self, op: OperationClass) -> list[JobMessage]:
        """Apply and return the current generation's queued messages. Never blocks."""
        return self._slots[op].drain()

    def poll_all(self) -> dict[OperationClass, list[JobMessage]]:
        """Poll every operation class; classes with no messages are omitted."""
        polled: dict[OperationClass, list[JobMessage]] = {}
        for op, slot in self._slots.items():
            messages = slot.drain()
            if messages:
                polled[op] = messages
        return polled

    async def wait_idle(self) -> None:
        """Wait for every outstanding job task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(
        self,
        slot: GenerationGuardedTask,
        generation: int,
        targets: list[str],
        operation: Operation,
    ) -> None:
        op = slot.op

        def report(done: int, total: int) -> None:
            slot.queue.put_nowait(
                JobMessage(op, generation, MessageKind.PROGRESS, done=done, total=total)
            )

        client: RpcClient | None = None
        try:
            with LoggingContext(
                f"{op.value} job", error_level=logging.DEBUG, generation=generation
            ):
                client = await self._connect()
                result = await operation(client, targets, report)
        except SwarmCtlError as e:
            slot.queue.put_nowait(
                JobMessage(op, generation, MessageKind.FAILED, error=str(e))
            )
        except Exception as e:
            logger.exception("Unexpected error in %s job %d", op.value, generation)
            slot.queue.put_nowait(
                JobMessage(op, generation, MessageKind.FAILED, error=str(e) or type(e).__name__)
            )
        else:
            slot.queue.put_nowait(
                JobMessage(op, generation, MessageKind.SUCCEEDED, result=result)
            )
        finally:
            if client is not None:
                await client.close()
