"""
Tracking-side errors. The provider errors live in routing.errors and are
re-exported here so callers can import the whole taxonomy from one place.
"""

from routing.errors import NoRouteFound, NotFound, ProviderError, TrackingError


class MissingIdentity(TrackingError):
    """Raised when a consignment has no trip linked to it (no live tracking possible)."""
    pass


__all__ = ["TrackingError", "NotFound", "ProviderError", "NoRouteFound", "MissingIdentity"]
