"""
Service wiring for CLI commands
"""
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.markup import escape

from ...core.events import EventBus
from ...core.logging import get_logger, get_stderr_console
from ...domain import FleetService
from ...domain.dispatch import Dispatcher
from ...domain.fleet import ProvisioningController, ServerEntry, ServerRegistry
from ...domain.sequence import CommandHistory, SequenceStore
from ...infrastructure.keys import LocalKeyProvider
from ...infrastructure.session import ParamikoRemoteSession
from ...infrastructure.ssh_config import SshConfigStore
from ...infrastructure.state import JsonFileStore
from ..config.loader import ConfigLoader, FleetSettings

logger = get_logger(__name__)
stderr_console = get_stderr_console()


def build_service(settings: FleetSettings) -> FleetService:
    """Wire a FleetService from settings and load the fleet config file"""
    events = EventBus()
    key_provider = LocalKeyProvider(ssh_dir=settings.ssh_dir, public_key=settings.public_key)
    remote_session = ParamikoRemoteSession(
        settings.config_path,
        connect_timeout=settings.connect_timeout,
        default_user=settings.default_user,
    )
    state_store = JsonFileStore(settings.state_dir)

    registry = ServerRegistry(
        settings.config_path,
        config_store=SshConfigStore(),
        key_provider=key_provider,
        events=events,
        default_user=settings.default_user,
        state_store=state_store,
    )
    service = FleetService(
        registry=registry,
        provisioning=ProvisioningController(
            registry, remote_session, verify_timeout=settings.verify_timeout
        ),
        dispatcher=Dispatcher(
            registry,
            remote_session,
            events=events,
            max_workers=settings.max_workers,
            command_timeout=settings.command_timeout,
            history_limit=settings.history_limit,
        ),
        sequences=SequenceStore(state_store),
        history=CommandHistory(state_store, limit=settings.history_limit),
        key_provider=key_provider,
    )
    service.reload()
    return service


def get_service(ctx: typer.Context) -> FleetService:
    """FleetService for this invocation, built on first use"""
    obj: Dict[str, Any] = ctx.ensure_object(dict)
    if obj.get("service") is None:
        settings = ConfigLoader().load(
            toml_path=obj.get("settings_path"),
            cli_overrides=obj.get("overrides"),
        )
        logger.debug(f"Fleet config: {settings.config_path}")
        obj["service"] = build_service(settings)
    return obj["service"]


def require_server(service: FleetService, name: str) -> ServerEntry:
    entry = service.find_server(name)
    if entry is None:
        fail(f"Unknown server: {name}")
    return entry


def fail(message: str, code: int = 1) -> None:
    """Print an error and leave with code"""
    stderr_console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(code)
