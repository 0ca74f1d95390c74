from .poller_state import PollerState, PollerStateException, transition_poller

__all__ = ["PollerState", "PollerStateException", "transition_poller"]
