import pytest

from tracking.state_machines import PollerState, PollerStateException, transition_poller


@pytest.mark.parametrize(
    "current,target",
    [
        (PollerState.IDLE, PollerState.ACTIVE),
        (PollerState.IDLE, PollerState.STOPPED),
        (PollerState.ACTIVE, PollerState.STOPPED),
    ],
)
def test_allowed_transitions(current, target):
    assert transition_poller(current, target) == target


@pytest.mark.parametrize(
    "current,target",
    [
        (PollerState.ACTIVE, PollerState.ACTIVE),
        (PollerState.ACTIVE, PollerState.IDLE),
        (PollerState.STOPPED, PollerState.ACTIVE),
        (PollerState.STOPPED, PollerState.IDLE),
    ],
)
def test_rejected_transitions(current, target):
    with pytest.raises(PollerStateException):
        transition_poller(current, target)
