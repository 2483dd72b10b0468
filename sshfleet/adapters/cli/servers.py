"""
Server CLI commands
"""
import typer
from pathlib import Path
from typing import Optional

from rich.markup import escape
from rich.table import Table

from ...core.exceptions import FleetError, RemoteSessionError
from ...core.logging import get_logger, get_stdout_console, get_stderr_console
from ...core.utils import parse_host_string
from ...domain.fleet import ServerEntry, ServerSpec, ServerState
from .context import fail, get_service, require_server
from .prompts import RichPromptProvider

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()
prompt_provider = RichPromptProvider()

STATE_STYLES = {
    ServerState.CONFIGURING: "yellow",
    ServerState.PENDING_VERIFICATION: "yellow",
    ServerState.VERIFYING: "cyan",
    ServerState.CONFIGURED: "green",
    ServerState.ERROR: "red",
}


def register_servers_app(app: typer.Typer) -> None:
    """Register servers subcommand app"""
    servers_app = typer.Typer(
        name="servers",
        help="Manage the servers of the fleet config file",
        add_completion=False,
        no_args_is_help=True,
    )

    servers_app.command(name="list")(servers_list)
    servers_app.command(name="add")(servers_add)
    servers_app.command(name="edit")(servers_edit)
    servers_app.command(name="remove")(servers_remove)
    servers_app.command(name="provision")(servers_provision)
    servers_app.command(name="verify")(servers_verify)
    servers_app.command(name="install-command")(servers_install_command)

    app.add_typer(servers_app, name="servers")


def _state_text(entry: ServerEntry) -> str:
    style = STATE_STYLES.get(entry.state, "white")
    return f"[{style}]{entry.state.value}[/{style}]"


def _ask_password(ask: bool) -> Optional[str]:
    if not ask:
        return None
    password = prompt_provider.prompt("SSH password (press Enter to skip)", password=True, default="")
    return password or None


def servers_list(ctx: typer.Context):
    """
    List servers

    Examples:
        sshfleet servers list
    """
    service = get_service(ctx)
    servers = service.list_servers()

    for problem in service.diagnostics():
        stderr_console.print(f"[yellow]Skipped block:[/yellow] {escape(str(problem))}")

    if not servers:
        stdout_console.print("[yellow]No servers.[/yellow] Add one with [cyan]sshfleet servers add HOST[/cyan]")
        return

    table = Table(title=f"Servers ({service.registry.config_path})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Host")
    table.add_column("User")
    table.add_column("State", no_wrap=True)
    table.add_column("Last verified")
    table.add_column("Identity file", style="dim", overflow="fold")

    for entry in servers:
        table.add_row(
            escape(entry.name),
            escape(entry.host),
            escape(entry.user),
            _state_text(entry),
            entry.last_verified_at.strftime("%Y-%m-%d %H:%M:%S") if entry.last_verified_at else "-",
            escape(entry.identity_file or "-"),
        )

    stdout_console.print(table)


def servers_add(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Host name or address, optionally user@host"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Server name (default: host)"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Login user (default: root)"),
    key: Optional[Path] = typer.Option(None, "--key", "-k", help="Public key to install (default: first ~/.ssh/*.pub)"),
    ask_password: bool = typer.Option(False, "--password", "-p", help="Prompt for the SSH password used to install the key"),
    install: bool = typer.Option(True, "--install/--no-install", help="Install the public key on the host now"),
):
    """
    Add a server and install its public key

    Examples:
        sshfleet servers add 10.0.0.5 --name web1
        sshfleet servers add admin@db.example.com -p
        sshfleet servers add 10.0.0.6 --no-install
    """
    service = get_service(ctx)
    hostname, parsed_user = parse_host_string(host, user)
    spec = ServerSpec(host=hostname, name=name, user=parsed_user, public_key=key)

    try:
        entry = service.registry.add(spec)
    except FleetError as e:
        fail(str(e))

    stdout_console.print(f"[green]✓[/green] Added [cyan]{escape(entry.name)}[/cyan] to {service.registry.config_path}")
    if not install:
        stdout_console.print(f"  Install the key later with [cyan]sshfleet servers provision {escape(entry.name)}[/cyan]")
        return

    _provision(service, entry, _ask_password(ask_password))


def _provision(service, entry: ServerEntry, password: Optional[str]) -> None:
    try:
        entry = service.provision_server(entry.id, password=password)
    except RemoteSessionError as e:
        stderr_console.print(f"[red]Key installation failed:[/red] {escape(str(e))}")
        stderr_console.print(f"  Retry with [cyan]sshfleet servers provision {escape(entry.name)}[/cyan] or run this yourself:")
        stderr_console.print(f"  {escape(service.install_command(entry.id))}", soft_wrap=True)
        raise typer.Exit(1)
    except FleetError as e:
        fail(str(e))

    stdout_console.print(f"[green]✓[/green] Key installed, {escape(entry.name)} is {_state_text(entry)}")
    stdout_console.print(f"  Check it with [cyan]sshfleet servers verify {escape(entry.name)}[/cyan]")


def servers_edit(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Server name"),
    host: Optional[str] = typer.Option(None, "--host", help="New host"),
    new_name: Optional[str] = typer.Option(None, "--rename", help="New server name"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="New login user"),
    key: Optional[Path] = typer.Option(None, "--key", "-k", help="New public key"),
):
    """
    Change a server; renaming moves its Host block

    Examples:
        sshfleet servers edit web1 --rename web-1
        sshfleet servers edit web1 --host 10.0.0.7 --user deploy
    """
    service = get_service(ctx)
    entry = require_server(service, name)
    spec = ServerSpec(
        host=host or entry.host,
        name=new_name or entry.name,
        user=user or entry.user,
        public_key=key,
    )

    try:
        updated = service.update_server(entry.id, spec)
    except FleetError as e:
        fail(str(e))

    stdout_console.print(
        f"[green]✓[/green] Updated [cyan]{escape(updated.name)}[/cyan] "
        f"({escape(updated.user)}@{escape(updated.host)})"
    )


def servers_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Server name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """
    Remove a server from the list and from the fleet config file
    """
    service = get_service(ctx)
    entry = require_server(service, name)

    if not yes and not prompt_provider.confirm(f"Remove {entry.name} from the list and the config file?"):
        raise typer.Exit(0)

    try:
        service.remove_server(entry.id)
    except FleetError as e:
        fail(str(e))

    stdout_console.print(f"[green]✓[/green] Removed [cyan]{escape(entry.name)}[/cyan]")


def servers_provision(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Server name"),
    ask_password: bool = typer.Option(False, "--password", "-p", help="Prompt for the SSH password"),
):
    """
    Install the server's public key (retry after a failed add)
    """
    service = get_service(ctx)
    entry = require_server(service, name)
    _provision(service, entry, _ask_password(ask_password))


def servers_verify(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Server name"),
):
    """
    Check that the server accepts key login
    """
    service = get_service(ctx)
    entry = require_server(service, name)

    try:
        with stdout_console.status(f"Verifying {escape(entry.name)}..."):
            entry = service.verify_server(entry.id)
    except FleetError as e:
        fail(str(e))

    if entry.state == ServerState.CONFIGURED:
        stdout_console.print(f"[green]✓[/green] {escape(entry.name)} is {_state_text(entry)}")
        return

    stderr_console.print(f"[red]✗[/red] Could not connect to {escape(entry.name)} ({_state_text(entry)})")
    raise typer.Exit(1)


def servers_install_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Server name"),
):
    """
    Print the shell command that installs the key by hand
    """
    service = get_service(ctx)
    entry = require_server(service, name)

    try:
        command = service.install_command(entry.id)
    except FleetError as e:
        fail(str(e))

    stdout_console.print(escape(command), soft_wrap=True)
