"""
Sequence CLI commands
"""
import typer
from typing import List, Optional

from rich.markup import escape
from rich.table import Table

from ...core.exceptions import FleetError
from ...core.logging import get_logger, get_stdout_console
from ...domain.dispatch import RunStatus
from .context import fail, get_service
from .prompts import RichPromptProvider
from .run import dispatch, print_run, select_targets

logger = get_logger(__name__)
stdout_console = get_stdout_console()
prompt_provider = RichPromptProvider()


def register_sequence_app(app: typer.Typer) -> None:
    """Register sequence subcommand app"""
    sequence_app = typer.Typer(
        name="sequence",
        help="Save and replay the most recent commands",
        add_completion=False,
        no_args_is_help=True,
    )

    sequence_app.command(name="save")(sequence_save)
    sequence_app.command(name="list")(sequence_list)
    sequence_app.command(name="show")(sequence_show)
    sequence_app.command(name="delete")(sequence_delete)
    sequence_app.command(name="replay")(sequence_replay)

    app.add_typer(sequence_app, name="sequence")


def sequence_save(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Sequence name"),
):
    """
    Save the most recent distinct commands as a sequence

    Examples:
        sshfleet sequence save deploy
    """
    service = get_service(ctx)
    try:
        sequence = service.save_sequence(name)
    except FleetError as e:
        fail(str(e))

    stdout_console.print(f"[green]✓[/green] Saved [cyan]{escape(sequence.name)}[/cyan]")
    for command in sequence.commands:
        stdout_console.print(f"  {escape(command)}")


def sequence_list(ctx: typer.Context):
    """List saved sequences"""
    service = get_service(ctx)
    sequences = service.list_sequences()
    if not sequences:
        stdout_console.print("[yellow]No sequences saved[/yellow]")
        return

    table = Table(title="Sequences")
    table.add_column("Name", style="cyan")
    table.add_column("Commands", justify="right")
    table.add_column("Most recent")
    table.add_column("Created")

    for sequence in sequences:
        table.add_row(
            escape(sequence.name),
            str(len(sequence.commands)),
            escape(sequence.commands[0]) if sequence.commands else "-",
            sequence.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    stdout_console.print(table)


def sequence_show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Sequence name"),
):
    """Show the commands of a sequence, most recent first"""
    service = get_service(ctx)
    try:
        sequence = service.get_sequence(name)
    except FleetError as e:
        fail(str(e))

    stdout_console.print(f"[bold]{escape(sequence.name)}[/bold]")
    for index, command in enumerate(sequence.commands, 1):
        stdout_console.print(f"  {index}. {escape(command)}")


def sequence_delete(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Sequence name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a sequence"""
    service = get_service(ctx)
    if not yes and not prompt_provider.confirm(f"Delete sequence {name}?"):
        raise typer.Exit(0)

    try:
        service.delete_sequence(name)
    except FleetError as e:
        fail(str(e))

    stdout_console.print(f"[green]✓[/green] Deleted [cyan]{escape(name)}[/cyan]")


def sequence_replay(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Sequence name"),
    servers: Optional[List[str]] = typer.Option(None, "--server", "-s", help="Target server name (repeatable)"),
    all_servers: bool = typer.Option(False, "--all", "-a", help="Target every configured server"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show the results tables"),
):
    """
    Re-run the commands of a sequence, oldest first

    Each command is a separate run; a failed run does not stop the next one.

    Examples:
        sshfleet sequence replay deploy --all
    """
    service = get_service(ctx)
    try:
        sequence = service.get_sequence(name)
    except FleetError as e:
        fail(str(e))

    names = select_targets(service, servers, all_servers)
    failed = 0
    for command in reversed(sequence.commands):
        run = dispatch(service, command, names)
        print_run(run, show_output=not quiet)
        if run.status != RunStatus.COMPLETED:
            failed += 1

    if failed:
        stdout_console.print(f"[red]{failed} of {len(sequence.commands)} run(s) did not complete[/red]")
        raise typer.Exit(1)
