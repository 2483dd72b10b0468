import pytest

from sshfleet.core.exceptions import InvalidTransition
from sshfleet.domain.fleet import ALLOWED_TRANSITIONS, ServerState, can_transition, check_transition

S = ServerState


@pytest.mark.parametrize(
    "current,new",
    [
        (S.CONFIGURING, S.PENDING_VERIFICATION),
        (S.PENDING_VERIFICATION, S.VERIFYING),
        (S.VERIFYING, S.CONFIGURED),
        (S.VERIFYING, S.ERROR),
        (S.ERROR, S.VERIFYING),
        (S.CONFIGURED, S.VERIFYING),
        (S.CONFIGURED, S.PENDING_VERIFICATION),
        (S.ERROR, S.PENDING_VERIFICATION),
    ],
)
def test_allowed(current, new):
    assert can_transition(current, new)
    check_transition(current, new)


@pytest.mark.parametrize(
    "current,new",
    [
        (S.CONFIGURING, S.CONFIGURED),
        (S.CONFIGURING, S.VERIFYING),
        (S.PENDING_VERIFICATION, S.CONFIGURED),
        (S.CONFIGURED, S.ERROR),
        (S.VERIFYING, S.PENDING_VERIFICATION),
        (S.ERROR, S.CONFIGURED),
    ],
)
def test_rejected(current, new):
    assert not can_transition(current, new)
    with pytest.raises(InvalidTransition):
        check_transition(current, new)


def test_every_state_has_an_exit():
    assert set(ALLOWED_TRANSITIONS) == set(ServerState)
    assert all(ALLOWED_TRANSITIONS[state] for state in ServerState)
