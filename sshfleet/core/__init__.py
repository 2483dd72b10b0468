"""
Core infrastructure layer
"""
from .client import RemoteClient, ClientConfig
from .constants import *
from .exceptions import *
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from .interfaces import ExecResult, StateStore, KeyProvider, RemoteSession, PromptProvider
from .events import Event, EventBus
from .utils import (
    parse_host_string,
    private_key_for,
    public_key_for,
    generate_ssh_key_pair,
    install_key_command,
    add_authorized_key,
)

__all__ = [
    "RemoteClient",
    "ClientConfig",
    "setup_logging",
    "get_logger",
    "get_stdout_console",
    "get_stderr_console",
    "ExecResult",
    "StateStore",
    "KeyProvider",
    "RemoteSession",
    "PromptProvider",
    "Event",
    "EventBus",
    "parse_host_string",
    "private_key_for",
    "public_key_for",
    "generate_ssh_key_pair",
    "install_key_command",
    "add_authorized_key",
]
