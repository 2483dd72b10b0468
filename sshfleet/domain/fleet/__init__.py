"""
Fleet domain: server entries, lifecycle, registry and provisioning
"""
from .models import CredentialRef, ServerEntry, ServerSpec, ServerState
from .lifecycle import ALLOWED_TRANSITIONS, can_transition, check_transition
from .registry import ServerRegistry
from .provisioning import ProvisioningController

__all__ = [
    "CredentialRef",
    "ServerEntry",
    "ServerSpec",
    "ServerState",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "check_transition",
    "ServerRegistry",
    "ProvisioningController",
]
