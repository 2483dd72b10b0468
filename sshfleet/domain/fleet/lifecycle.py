"""
Server lifecycle state machine

    configuring -> pending_verification -> verifying -> configured | error
    error -> verifying                      (manual retry)
    configured -> verifying                 (manual re-check)
    configured | error -> pending_verification   (credential rotated)

Entries loaded from the config file start directly in configured.
"""
from typing import Dict, FrozenSet

from ...core.exceptions import InvalidTransition
from .models import ServerState

S = ServerState

ALLOWED_TRANSITIONS: Dict[ServerState, FrozenSet[ServerState]] = {
    S.CONFIGURING: frozenset({S.PENDING_VERIFICATION}),
    S.PENDING_VERIFICATION: frozenset({S.VERIFYING}),
    S.VERIFYING: frozenset({S.CONFIGURED, S.ERROR}),
    S.ERROR: frozenset({S.VERIFYING, S.PENDING_VERIFICATION}),
    S.CONFIGURED: frozenset({S.VERIFYING, S.PENDING_VERIFICATION}),
}

# States from which an operator "verify" is accepted
VERIFIABLE_STATES = frozenset({S.PENDING_VERIFICATION, S.ERROR, S.CONFIGURED})


def can_transition(current: ServerState, new: ServerState) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def check_transition(current: ServerState, new: ServerState) -> None:
    """
    Raises:
        InvalidTransition: If current -> new is not in the table
    """
    if not can_transition(current, new):
        raise InvalidTransition(f"Cannot move from {current.value} to {new.value}")
