"""
Main CLI application
"""
import typer
from pathlib import Path
from typing import Optional

from ...core.logging import setup_logging, get_logger, get_stdout_console
from .keys import register_keys_app
from .run import register_run_command
from .sequences import register_sequence_app
from .servers import register_servers_app

logger = get_logger(__name__)
console = get_stdout_console()

# Create main app
app = typer.Typer(
    name="sshfleet",
    add_completion=False,
    help="Manage a fleet of SSH servers and run commands on them",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

register_servers_app(app)
register_run_command(app)
register_sequence_app(app)
register_keys_app(app)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log file path",
    ),
    settings_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings file path (TOML, default: ~/.sshfleet/config.toml)",
    ),
    ssh_config: Optional[Path] = typer.Option(
        None,
        "--ssh-config",
        help="Fleet SSH config file (default: ~/.ssh/sshfleet_config)",
    ),
):
    """
    sshfleet - SSH fleet management tool

    Use subcommands to perform different operations:
    - servers: Add, provision, verify and remove servers
    - run: Run one command on many servers
    - sequence: Save and replay recent commands
    - keys: Manage the local key pair
    """
    setup_logging(level=log_level, log_file=log_file)

    obj = ctx.ensure_object(dict)
    obj.setdefault("settings_path", settings_file)
    obj.setdefault("overrides", {"config_path": ssh_config})


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()
