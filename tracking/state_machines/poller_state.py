from enum import Enum


class PollerStateException(Exception):
    """Raised when an invalid poller transition is attempted."""
    pass


class PollerState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


# IDLE -> ACTIVE -> STOPPED. A stopped poller is never restarted; the session
# builds a new one for a new trip identity.
_ALLOWED = {
    PollerState.IDLE: {PollerState.ACTIVE, PollerState.STOPPED},
    PollerState.ACTIVE: {PollerState.STOPPED},
    PollerState.STOPPED: set(),
}


def transition_poller(current: PollerState, target: PollerState) -> PollerState:
    """
    Validates a poller lifecycle transition and returns the new state.
    IDLE -> STOPPED is allowed so a session torn down before it ever
    started polling can still be stopped.
    """
    if target not in _ALLOWED[current]:
        raise PollerStateException(f"Cannot transition poller from {current.value} to {target.value}")
    return target
