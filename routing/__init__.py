#Marks routing as a package.
#Re-exports the public API (geocoding pipeline, OSRM directions client,
#route request engine) so other modules import from routing without knowing internal file names.
#No business logic.

from .errors import NoRouteFound, NotFound, ProviderError, TrackingError
from .models import Coordinate, RouteCandidate
from .geocoding import GeocodeOutcome, GeocodingPipeline, NominatimGeocoder
from .osrm_client import OSRMClient
from .route_service import RouteRequestEngine, RouteSet, RouteType

__all__ = [
    "Coordinate",
    "RouteCandidate",
    "GeocodeOutcome",
    "GeocodingPipeline",
    "NominatimGeocoder",
    "OSRMClient",
    "RouteRequestEngine",
    "RouteSet",
    "RouteType",
    "TrackingError",
    "NotFound",
    "ProviderError",
    "NoRouteFound",
]
