"""
Run CLI command - one command on many servers
"""
import typer
from typing import List, Optional

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ...core.exceptions import FleetError
from ...core.logging import get_logger, get_stdout_console, get_stderr_console
from ...domain import FleetService
from ...domain.dispatch import CommandRun, Outcome, RunStatus
from ...domain.fleet import ServerState
from .context import fail, get_service

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()

OUTCOME_STYLES = {
    Outcome.SUCCESS: "green",
    Outcome.FAILED: "red",
    Outcome.ERROR: "red",
    Outcome.TIMEOUT: "yellow",
    Outcome.CANCELLED: "dim",
}


def register_run_command(app: typer.Typer) -> None:
    """Register run command directly (not as subcommand)"""
    app.command(name="run")(run_command)


def select_targets(service: FleetService, servers: Optional[List[str]], all_servers: bool) -> List[str]:
    """Server names from -s options, or every configured server with --all"""
    if all_servers:
        names = [e.name for e in service.list_servers() if e.state == ServerState.CONFIGURED]
        if not names:
            fail("No configured servers")
        return names
    if not servers:
        fail("Select servers with --server NAME or --all")
    return list(servers)


def dispatch(service: FleetService, command: str, names: List[str]) -> CommandRun:
    """Start a run and wait for it; Ctrl+C cancels the remaining targets"""
    try:
        handle = service.start_command_by_name(command, names)
    except FleetError as e:
        fail(str(e))

    try:
        with stdout_console.status(f"Running on {len(handle.eligible)} server(s)..."):
            return handle.wait()
    except KeyboardInterrupt:
        stderr_console.print("[yellow]Cancelling...[/yellow]")
        handle.cancel()
        return handle.wait()


def print_run(run: CommandRun, show_output: bool = True) -> None:
    """Results table followed by each target's output"""
    table = Table(title=f"$ {escape(run.command_text)}")
    table.add_column("Server", style="cyan", no_wrap=True)
    table.add_column("Outcome", no_wrap=True)
    table.add_column("Exit", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Detail", style="dim")

    for result in run.results:
        style = OUTCOME_STYLES.get(result.outcome, "white")
        elapsed = "-"
        if result.started_at and result.finished_at:
            elapsed = f"{(result.finished_at - result.started_at).total_seconds():.1f}s"
        table.add_row(
            escape(result.server_name),
            f"[{style}]{result.outcome.value}[/{style}]",
            "-" if result.exit_code is None else str(result.exit_code),
            elapsed,
            escape(result.error or ""),
        )
    for item in run.excluded:
        table.add_row(escape(item.server_name), "[dim]skipped[/dim]", "-", "-", escape(item.reason))

    stdout_console.print(table)

    if show_output:
        for result in run.results:
            output = result.stdout.rstrip()
            if result.stderr.strip():
                output = f"{output}\n{result.stderr.rstrip()}".strip()
            if not output:
                continue
            stdout_console.print(
                Panel(
                    escape(output),
                    title=escape(result.server_name),
                    border_style=OUTCOME_STYLES.get(result.outcome, "blue"),
                )
            )

    status_style = "green" if run.status == RunStatus.COMPLETED else "red"
    stdout_console.print(f"[{status_style}]{run.status.value}[/{status_style}]")


def run_command(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Shell command to run"),
    servers: Optional[List[str]] = typer.Option(None, "--server", "-s", help="Target server name (repeatable)"),
    all_servers: bool = typer.Option(False, "--all", "-a", help="Target every configured server"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show the results table"),
):
    """
    Run a command on several servers at once

    Exits with 1 when any target did not succeed.

    Examples:
        sshfleet run "uptime" --all
        sshfleet run "df -h /" -s web1 -s web2
    """
    service = get_service(ctx)
    names = select_targets(service, servers, all_servers)
    run = dispatch(service, command, names)
    print_run(run, show_output=not quiet)

    if run.status != RunStatus.COMPLETED:
        raise typer.Exit(1)
