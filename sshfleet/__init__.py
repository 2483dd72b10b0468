"""
sshfleet - SSH fleet management tool

Keeps a list of servers backed by a dedicated OpenSSH config file, supporting:
- Key installation and connection verification per server
- Running one command on many servers concurrently
- Saving and replaying the most recent commands as sequences
"""

__version__ = "0.1.0"

# Export core components
from .core import (
    RemoteClient,
    ClientConfig,
    EventBus,
    generate_ssh_key_pair,
    add_authorized_key,
)

# Export domain models
from .domain import FleetService
from .domain.fleet import ServerEntry, ServerSpec, ServerState, CredentialRef
from .domain.dispatch import CommandRun, TargetResult, Outcome, RunStatus
from .domain.sequence import Sequence

__all__ = [
    # Version
    "__version__",
    # Client
    "RemoteClient",
    "ClientConfig",
    "EventBus",
    # Utilities
    "generate_ssh_key_pair",
    "add_authorized_key",
    # Service
    "FleetService",
    # Fleet models
    "ServerEntry",
    "ServerSpec",
    "ServerState",
    "CredentialRef",
    # Dispatch models
    "CommandRun",
    "TargetResult",
    "Outcome",
    "RunStatus",
    # Sequence models
    "Sequence",
]
