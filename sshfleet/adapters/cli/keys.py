"""
Key CLI commands
"""
import typer
from pathlib import Path
from typing import Optional

from rich.markup import escape

from ...core.exceptions import AlreadyExists, FleetError
from ...core.logging import get_logger, get_stdout_console, get_stderr_console
from .context import fail, get_service
from .prompts import RichPromptProvider

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()
prompt_provider = RichPromptProvider()


def register_keys_app(app: typer.Typer) -> None:
    """Register keys subcommand app"""
    keys_app = typer.Typer(
        name="keys",
        help="Manage the local key pair",
        add_completion=False,
        no_args_is_help=True,
    )

    keys_app.command(name="default")(keys_default)
    keys_app.command(name="generate")(keys_generate)

    app.add_typer(keys_app, name="keys")


def keys_default(ctx: typer.Context):
    """Show the public key installed on new servers"""
    service = get_service(ctx)
    if service.key_provider is None:
        fail("No key provider configured")

    public_key = service.key_provider.default_public_key()
    stdout_console.print(escape(str(public_key)))
    if not public_key.exists():
        stderr_console.print("[yellow]Key does not exist yet.[/yellow] Create it with [cyan]sshfleet keys generate[/cyan]")


def keys_generate(
    ctx: typer.Context,
    path: Optional[Path] = typer.Option(None, "--path", help="Private key path (default: ~/.ssh/id_rsa)"),
    force: bool = typer.Option(False, "--force", "-f", help="Replace an existing key without asking"),
):
    """
    Generate an RSA key pair

    Replacing a key sends the servers that used it back to
    pending_verification; install and verify it on them again.

    Examples:
        sshfleet keys generate
        sshfleet keys generate --path ~/.ssh/fleet_rsa
    """
    service = get_service(ctx)

    try:
        public_key, affected = service.generate_key(path, overwrite=force)
    except AlreadyExists as e:
        if not prompt_provider.confirm(f"{e}. Overwrite it?"):
            raise typer.Exit(1)
        try:
            public_key, affected = service.generate_key(path, overwrite=True)
        except FleetError as e:
            fail(str(e))
    except FleetError as e:
        fail(str(e))

    stdout_console.print(f"[green]✓[/green] Generated {escape(str(public_key))}")
    for entry in affected:
        stdout_console.print(
            f"  [yellow]{escape(entry.name)}[/yellow] needs the new key: "
            f"[cyan]sshfleet servers provision {escape(entry.name)}[/cyan]"
        )
