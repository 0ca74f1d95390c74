"""
Purpose: Error taxonomy shared by the routing adapters and the tracking engine.

NotFound      -> the provider answered but had nothing (expected, not a failure)
ProviderError -> transport / upstream failure (retryable by the caller)
NoRouteFound  -> valid coordinates but the directions provider has no path
"""


class TrackingError(Exception):
    """Base class for every error raised by the tracking engine."""
    pass


class NotFound(TrackingError):
    """Raised when an address (or trip) has no result upstream."""
    pass


class ProviderError(TrackingError):
    """Raised when an external provider fails (network, HTTP, bad payload)."""
    pass


class NoRouteFound(TrackingError):
    """Raised when the directions provider returns an empty route set."""
    pass
