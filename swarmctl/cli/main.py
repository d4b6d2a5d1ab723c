"""swarmctl command line.

Drives the same session layer an interactive client uses, one command at a
time: actions are dispatched as background jobs, awaited and then applied
with a poll before the result is printed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table
from rich.text import Text

from swarmctl import __version__
from swarmctl.config.config import get_observability_config, init_config
from swarmctl.daemon.events import LogEntry, LogEvent, UnknownEvent
from swarmctl.daemon.ipc_protocol import Method
from swarmctl.interface.daemon_session import DaemonSession
from swarmctl.interface.jobs import OperationClass
from swarmctl.interface.operations import VerifyOutcome, VerifyReport
from swarmctl.interface.state import Area
from swarmctl.models import Config
from swarmctl.utils.exceptions import SwarmCtlError
from swarmctl.utils.logging_config import get_logger, log_exception, setup_logging

logger = get_logger(__name__)
console = Console()

_POLL_INTERVAL = 0.05


def _run(ctx: click.Context, body: Callable[[DaemonSession], Awaitable[Any]]) -> Any:
    """Run ``body`` against a started session and turn errors into CLI errors."""
    config: Config = ctx.obj["config"]

    async def _main() -> Any:
        session = DaemonSession(config=config)
        await session.start(subscribe=False, refresh=False)
        try:
            error = session.state.error(Area.CONNECTION)
            if error:
                raise click.ClickException(error)
            return await body(session)
        finally:
            await session.close()

    try:
        return asyncio.run(_main())
    except click.ClickException:
        raise
    except SwarmCtlError as e:
        raise click.ClickException(str(e)) from e
    except Exception as e:
        log_exception(logger, e, "Command failed")
        raise click.ClickException(str(e) or type(e).__name__) from e


async def _settle(session: DaemonSession) -> None:
    """Wait for jobs, including follow-up refreshes, and apply their results."""
    while True:
        await session.wait_idle()
        session.poll()
        if session.dispatcher.pending == 0:
            return


def _raise_area_error(session: DaemonSession, area: Area) -> None:
    error = session.state.error(area)
    if error:
        raise click.ClickException(error)


def _format_size(size: int | None) -> str:
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return str(size)


def _print_topics(session: DaemonSession) -> None:
    rows = session.topics_view.items
    if not rows:
        console.print("[yellow]No topics[/yellow]")
        return
    table = Table(title="Topics")
    table.add_column("Name", style="cyan")
    table.add_column("Joined", style="green")
    table.add_column("Peers", justify="right")
    table.add_column("Auto-join")
    table.add_column("Key", style="dim")
    for row in rows:
        table.add_row(
            row.name,
            "yes" if row.joined else "no",
            str(row.peers),
            "yes" if row.auto_join else "no",
            (row.key or "-")[:16],
        )
    console.print(table)


def _print_log(entry: LogEntry) -> None:
    style = {"error": "red", "warn": "yellow", "warning": "yellow", "debug": "dim"}.get(
        entry.level.lower(), ""
    )
    console.print(Text(f"{entry.ts} {entry.level.upper():<5} {entry.message}", style=style))


def _print_verify_report(report: VerifyReport) -> None:
    table = Table(title="Verify")
    table.add_column("Path", style="cyan")
    table.add_column("Result")
    for item in report.results:
        if item.outcome is VerifyOutcome.VALID:
            table.add_row(item.path, "[green]valid[/green]")
        elif item.outcome is VerifyOutcome.INVALID:
            table.add_row(item.path, "[red]invalid[/red]")
        else:
            table.add_row(item.path, f"[red]error: {item.error}[/red]")
    console.print(table)
    summary = report.summary
    console.print(f"ok={summary['ok']} failed={summary['failed']} total={summary['total']}")


@click.group()
@click.version_option(__version__, prog_name="swarmctl")
@click.option(
    "--endpoint",
    "-e",
    help="Daemon IPC endpoint (Unix socket path or Windows pipe name)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Console log level",
)
@click.pass_context
def cli(ctx, endpoint, log_level):
    """Control a running swarmfs daemon."""
    overrides: dict[str, Any] = {}
    if endpoint:
        overrides["daemon"] = {"endpoint": endpoint}
    if log_level:
        overrides["observability"] = {"log_level": log_level.upper()}

    try:
        config_manager = init_config(overrides)
    except SwarmCtlError as e:
        raise click.ClickException(str(e)) from e

    setup_logging(get_observability_config())
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_manager.config


@cli.command()
@click.pass_context
def ping(ctx):
    """Check that the daemon answers."""

    async def body(session: DaemonSession) -> Any:
        return await session.call(Method.DAEMON_PING)

    result = _run(ctx, body)
    if isinstance(result, dict):
        details = ", ".join(f"{k}={v}" for k, v in result.items())
        console.print(f"[green]Daemon is alive[/green] ({details})")
    else:
        console.print("[green]Daemon is alive[/green]")


@cli.command()
@click.pass_context
def status(ctx):
    """Show the node status."""

    async def body(session: DaemonSession) -> Any:
        session.refresh_status()
        await _settle(session)
        _raise_area_error(session, Area.STATUS)
        return session.state.status

    console.print_json(data=_run(ctx, body))


@cli.command()
@click.pass_context
def topics(ctx):
    """List topics with their join state and peer counts."""

    async def body(session: DaemonSession) -> None:
        session.refresh_overview()
        await _settle(session)
        _raise_area_error(session, Area.NETWORK)
        _print_topics(session)

    _run(ctx, body)


def _topic_action(ctx: click.Context, name: str, action: str) -> None:
    async def body(session: DaemonSession) -> None:
        getattr(session, action)(name)
        await _settle(session)
        _raise_area_error(session, Area.NETWORK)
        _print_topics(session)

    _run(ctx, body)


@cli.command()
@click.argument("name")
@click.pass_context
def join(ctx, name):
    """Join a topic."""
    _topic_action(ctx, name, "join_topic")


@cli.command()
@click.argument("name")
@click.pass_context
def leave(ctx, name):
    """Leave a topic."""
    _topic_action(ctx, name, "leave_topic")


@cli.command()
@click.argument("name")
@click.option("--no-auto-join", is_flag=True, help="Do not join the topic on daemon start")
@click.option("--password", help="Topic password")
@click.pass_context
def create(ctx, name, no_auto_join, password):
    """Create a topic."""

    async def body(session: DaemonSession) -> None:
        session.create_topic(name, auto_join=not no_auto_join, password=password)
        await _settle(session)
        _raise_area_error(session, Area.NETWORK)
        console.print(f"[green]Created topic {name.strip()}[/green]")
        _print_topics(session)

    _run(ctx, body)


@cli.command("rm")
@click.argument("name")
@click.pass_context
def remove_topic(ctx, name):
    """Remove a topic."""
    _topic_action(ctx, name, "remove_topic")


@cli.command()
@click.option("--filter", "-f", "query", default="", help="Fuzzy filter on paths")
@click.pass_context
def files(ctx, query):
    """List shared files and directories."""

    async def body(session: DaemonSession) -> None:
        session.refresh_files()
        await _settle(session)
        _raise_area_error(session, Area.FILES)

        view = session.files_view
        view.set_query(query)
        entries = view.visible_items()
        if not entries:
            console.print("[yellow]No shared files[/yellow]")
            return

        table = Table(title="Shared files")
        table.add_column("Type")
        table.add_column("Path", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Chunks", justify="right")
        table.add_column("Merkle root", style="dim")
        for entry in entries:
            table.add_row(
                "dir" if entry.is_dir else "file",
                entry.path,
                "-" if entry.is_dir else _format_size(entry.size),
                "-" if entry.chunks is None else str(entry.chunks),
                (entry.merkle_root or "-")[:16],
            )
        console.print(table)

    _run(ctx, body)


@cli.command()
@click.argument("path")
@click.pass_context
def info(ctx, path):
    """Show details for one shared path."""

    async def body(session: DaemonSession) -> Any:
        return await session.call(Method.FILES_INFO, {"path": path})

    console.print_json(data=_run(ctx, body))


@cli.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def verify(ctx, paths):
    """Verify shared paths against their stored hashes."""

    async def body(session: DaemonSession) -> VerifyReport | None:
        session.verify_files(list(paths))
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Verifying", total=len(paths))
            while session.dispatcher.is_running(OperationClass.VERIFY):
                await asyncio.sleep(_POLL_INTERVAL)
                session.poll()
                if session.state.verify_progress is not None:
                    done, total = session.state.verify_progress
                    progress.update(task, completed=done, total=total)
        _raise_area_error(session, Area.FILES)
        return session.state.last_verify

    report = _run(ctx, body)
    if report is None:
        return
    _print_verify_report(report)
    if report.failed:
        ctx.exit(1)


@cli.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def add(ctx, paths):
    """Start sharing local paths."""

    async def body(session: DaemonSession) -> None:
        session.add_files(list(paths))
        await _settle(session)
        _raise_area_error(session, Area.FILES)

    _run(ctx, body)
    console.print(f"[green]Added {len(paths)} path(s)[/green]")


@cli.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def remove(ctx, paths):
    """Stop sharing paths (stops at the first failure)."""

    async def body(session: DaemonSession) -> None:
        session.remove_files(list(paths))
        await _settle(session)
        _raise_area_error(session, Area.FILES)

    _run(ctx, body)
    console.print(f"[green]Removed {len(paths)} path(s)[/green]")


@cli.command()
@click.option("--lines", "-n", type=int, default=None, help="Number of entries to show")
@click.pass_context
def logs(ctx, lines):
    """Show recent daemon log entries."""

    async def body(session: DaemonSession) -> list[LogEntry]:
        session.refresh_logs(lines)
        await _settle(session)
        _raise_area_error(session, Area.LOGS)
        return list(session.state.logs)

    for entry in _run(ctx, body):
        _print_log(entry)


@cli.command()
@click.option("--count", "-c", type=int, default=0, help="Stop after this many events (0 = unlimited)")
@click.pass_context
def events(ctx, count):
    """Stream daemon events until interrupted or the daemon goes away."""

    async def body(session: DaemonSession) -> None:
        seen = 0
        stream = session.events
        stream.start()
        while True:
            for event in stream.drain():
                if isinstance(event, LogEvent):
                    _print_log(event.entry)
                elif isinstance(event, UnknownEvent):
                    console.print(f"[dim]{event.name}[/dim] (unknown)")
                else:
                    console.print(f"[cyan]{event.name}[/cyan]", getattr(event, "data", None))
                seen += 1
                if count and seen >= count:
                    return
            if stream.closed:
                console.print("[yellow]Event stream closed[/yellow]")
                return
            await asyncio.sleep(_POLL_INTERVAL)

    try:
        _run(ctx, body)
    except KeyboardInterrupt:
        pass


def main():
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
