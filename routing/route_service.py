#Purpose: Route computation for downstream use.
#Returns the route information needed by:
#map display / polyline geometry
#distance + travel time summary
#Selection policy:
#primary  = first candidate in provider order (provider's best estimate)
#shortest = argmin(distance_m), ties -> lowest index
#Both are kept so the caller can toggle without re-requesting.
#No retries here: retry policy belongs to the caller.

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

from routing.errors import NoRouteFound
from routing.geocoding import GeocodingPipeline
from routing.models import Coordinate, RouteCandidate

logger = logging.getLogger(__name__)


class RouteType(str, Enum):
    FULL = "full"
    SHORTEST = "shortest"


def shortest_index(candidates: Sequence[RouteCandidate]) -> int:
    """
    Index of the candidate with the smallest distance. First seen wins ties.
    """
    if not candidates:
        raise NoRouteFound("No route candidates to choose from")

    best = 0
    for index, candidate in enumerate(candidates):
        # strict < keeps the earliest index on equal distances
        if candidate.distance_m < candidates[best].distance_m:
            best = index
    return best


@dataclass(frozen=True)
class RouteSet:
    """
    The ordered candidates of one directions request plus both selections.
    """
    candidates: Tuple[RouteCandidate, ...]
    shortest_idx: int = 0

    @classmethod
    def from_candidates(cls, candidates: Sequence[RouteCandidate]) -> RouteSet:
        candidates = tuple(candidates)
        return cls(candidates=candidates, shortest_idx=shortest_index(candidates))

    @property
    def primary(self) -> RouteCandidate:
        return self.candidates[0]

    @property
    def shortest(self) -> RouteCandidate:
        return self.candidates[self.shortest_idx]

    @property
    def alternates(self) -> Tuple[RouteCandidate, ...]:
        return self.candidates[1:]

    def select(self, route_type: RouteType) -> RouteCandidate:
        if route_type == RouteType.SHORTEST:
            return self.shortest
        return self.primary


class RouteRequestEngine:
    """
    Requests driving routes from a directions provider and wraps them in a RouteSet.
    """

    def __init__(self, directions, geocoding: GeocodingPipeline | None = None):
        self.directions = directions
        self.geocoding = geocoding

    def request_routes(self, origin: Coordinate, destination: Coordinate,
                       want_alternates: bool = True) -> RouteSet:
        """
        Raises:
            NoRouteFound  when the provider returns no candidates
            ProviderError on transport / provider failures (propagated as-is)
        """
        candidates = self.directions.request_directions(origin, destination, want_alternates)
        if not candidates:
            raise NoRouteFound(f"No route between {origin} and {destination}")

        routes = RouteSet.from_candidates(candidates)
        logger.debug(
            "Got %d route(s); primary %.0fm, shortest #%d %.0fm",
            len(routes.candidates), routes.primary.distance_m,
            routes.shortest_idx, routes.shortest.distance_m,
        )
        return routes

    def request_routes_for_addresses(self, pickup_address: str, drop_address: str,
                                     want_alternates: bool = True) -> RouteSet:
        """
        Geocodes both addresses (concurrently) and requests routes between them.
        Directions are only requested once both endpoints resolved; otherwise the
        first endpoint error (NotFound / ProviderError) is raised.
        """
        if self.geocoding is None:
            raise ValueError("RouteRequestEngine was built without a GeocodingPipeline")

        pickup, drop = self.geocoding.resolve_pair(pickup_address, drop_address)
        for outcome in (pickup, drop):
            if not outcome.resolved:
                raise outcome.error

        return self.request_routes(pickup.coordinate, drop.coordinate, want_alternates)
