"""
Purpose: Package entry + stable exports.

Live trip tracking package.

Public API:
- Domain models: LocationSample, DeviationWarning, PathHistory
- Camera framing: fit, Viewport
- Polling: LiveLocationPoller, PollHandle, TickResult
- Session: TrackingSessionController, TrackingSession, SessionStatus
- Backend adapter: TripDataClient
"""
from .camera import BoundingBox, Viewport, fit
from .errors import MissingIdentity
from .models import DeviationWarning, LocationSample, PathHistory
from .policy import TrackingPolicy, default_tracking_policy
from .poller import FetchKind, LiveLocationPoller, PollHandle, TickResult, TickStatus
from .session import SessionStatus, TrackingSession, TrackingSessionController
from .trip_client import TripDataClient

__all__ = [
    "BoundingBox",
    "Viewport",
    "fit",
    "MissingIdentity",
    "DeviationWarning",
    "LocationSample",
    "PathHistory",
    "TrackingPolicy",
    "default_tracking_policy",
    "FetchKind",
    "LiveLocationPoller",
    "PollHandle",
    "TickResult",
    "TickStatus",
    "SessionStatus",
    "TrackingSession",
    "TrackingSessionController",
    "TripDataClient",
]
