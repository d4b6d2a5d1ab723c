"""RPC call sequences run by the job dispatcher.

Each operation has the dispatcher's signature ``(client, targets, report)``
and returns the job's result. Errors propagate to the dispatcher, which turns
them into a failed job, except in :func:`verify` where every path is judged
independently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from swarmctl.daemon.ipc_client import RpcClient
from swarmctl.interface.jobs import Operation, ProgressReporter
from swarmctl.utils.exceptions import SwarmCtlError, ValidationError

logger = logging.getLogger(__name__)

NO_VALIDITY_FLAG = "no validity flag"


@dataclass(frozen=True)
class TopicActionResult:
    """Outcome of a join or leave followed by an overview refresh."""

    name: str
    result: Any
    overview: Any


@dataclass(frozen=True)
class FileInfoResult:
    """Details for one path, tagged so a stale answer can be recognized."""

    path: str
    info: Any


class VerifyOutcome(str, Enum):
    """Classification of one verified path."""

    VALID = "valid"
    INVALID = "invalid"
    ERROR = "error"


@dataclass(frozen=True)
class VerifyItem:
    """Verification result for one path."""

    path: str
    outcome: VerifyOutcome
    result: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the path verified clean."""
        return self.outcome is VerifyOutcome.VALID

    def to_dict(self) -> dict[str, Any]:
        """Render as ``{path, result}`` or ``{path, error}``."""
        if self.error is not None:
            return {"path": self.path, "error": self.error}
        return {"path": self.path, "result": self.result}


@dataclass(frozen=True)
class VerifyReport:
    """Aggregate verification result, items in input order."""

    results: list[VerifyItem] = field(default_factory=list)

    @property
    def ok(self) -> int:
        """Number of valid paths."""
        return sum(1 for item in self.results if item.ok)

    @property
    def failed(self) -> int:
        """Number of invalid or errored paths."""
        return len(self.results) - self.ok

    @property
    def total(self) -> int:
        """Number of verified paths."""
        return len(self.results)

    @property
    def summary(self) -> dict[str, int]:
        """``{ok, failed, total}`` counts."""
        return {"ok": self.ok, "failed": self.failed, "total": self.total}

    def to_dict(self) -> dict[str, Any]:
        """Render as ``{summary, results}``."""
        return {
            "summary": self.summary,
            "results": [item.to_dict() for item in self.results],
        }


def _single_target(targets: list[str]) -> str:
    if not targets:
        raise ValidationError("no target given")
    return targets[0]


def classify_verify_result(path: str, result: Any) -> VerifyItem:
    """Turn a ``files.verify`` result into a verify item."""
    valid = result.get("valid") if isinstance(result, dict) else None
    if valid is True:
        return VerifyItem(path, VerifyOutcome.VALID, result=result)
    if valid is False:
        return VerifyItem(path, VerifyOutcome.INVALID, result=result)
    return VerifyItem(path, VerifyOutcome.ERROR, error=NO_VALIDITY_FLAG)


async def join(client: RpcClient, targets: list[str], report: ProgressReporter) -> TopicActionResult:
    """Join a topic, then fetch the refreshed overview."""
    name = _single_target(targets)
    result = await client.topic_join(name)
    overview = await client.network_overview()
    return TopicActionResult(name, result, overview)


async def leave(client: RpcClient, targets: list[str], report: ProgressReporter) -> TopicActionResult:
    """Leave a topic, then fetch the refreshed overview."""
    name = _single_target(targets)
    result = await client.topic_leave(name)
    overview = await client.network_overview()
    return TopicActionResult(name, result, overview)


def create_topic(auto_join: bool = True, password: str | None = None) -> Operation:
    """Build the create-topic operation with its options bound."""

    async def run(client: RpcClient, targets: list[str], report: ProgressReporter) -> Any:
        return await client.topic_create(_single_target(targets), auto_join=auto_join, password=password)

    return run


async def remove_topic(client: RpcClient, targets: list[str], report: ProgressReporter) -> Any:
    """Remove a topic."""
    return await client.topic_remove(_single_target(targets))


async def verify(client: RpcClient, targets: list[str], report: ProgressReporter) -> VerifyReport:
    """Verify every path in order.

    Progress ``(i, n)`` is reported before each path and ``(n, n)`` at the
    end. A failing path never stops the batch.
    """
    total = len(targets)
    items: list[VerifyItem] = []
    for i, path in enumerate(targets):
        report(i, total)
        try:
            result = await client.files_verify(path)
        except SwarmCtlError as e:
            logger.debug("Verify of %s failed: %s", path, e)
            items.append(VerifyItem(path, VerifyOutcome.ERROR, error=str(e)))
            continue
        items.append(classify_verify_result(path, result))
    report(total, total)
    return VerifyReport(items)


async def info(client: RpcClient, targets: list[str], report: ProgressReporter) -> FileInfoResult:
    """Fetch details for one path."""
    path = _single_target(targets)
    return FileInfoResult(path, await client.files_info(path))


async def add_files(client: RpcClient, targets: list[str], report: ProgressReporter) -> Any:
    """Share local paths in a single request."""
    if not targets:
        raise ValidationError("no paths given")
    return await client.files_add(targets)


async def remove_files(client: RpcClient, targets: list[str], report: ProgressReporter) -> list[Any]:
    """Stop sharing each path in order, stopping at the first error."""
    results = []
    total = len(targets)
    for i, path in enumerate(targets):
        report(i, total)
        results.append(await client.files_remove(path))
    report(total, total)
    return results


async def overview(client: RpcClient, targets: list[str], report: ProgressReporter) -> Any:
    """Fetch the network overview."""
    return await client.network_overview()


async def files(client: RpcClient, targets: list[str], report: ProgressReporter) -> Any:
    """Fetch the shared files listing."""
    return await client.files_list()


async def status(client: RpcClient, targets: list[str], report: ProgressReporter) -> Any:
    """Fetch the node status."""
    return await client.node_status()


def logs(lines: int = 200) -> Operation:
    """Build the log-tail operation for ``lines`` entries."""

    async def run(client: RpcClient, targets: list[str], report: ProgressReporter) -> Any:
        return await client.logs_tail(lines)

    return run
