"""
Purpose: Core geo data models for the routing capability.
What it does:
- Coordinate (lat/lon with range validation)
- RouteCandidate (polyline + distance/time as received from the provider)

Rule: No HTTP calls, no selection logic. Models only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple


@dataclass(frozen=True)
class Coordinate:
    """
    A WGS84 point. Latitude in [-90, 90], longitude in [-180, 180].
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class RouteCandidate:
    """
    One driving route returned by the directions provider.
    distance_m / travel_time_s are passed through without re-derivation.
    """
    polyline: Tuple[Coordinate, ...]
    distance_m: float
    travel_time_s: float

    @classmethod
    def new(cls, polyline: Sequence[Coordinate], distance_m: float, travel_time_s: float) -> RouteCandidate:
        return cls(
            polyline=tuple(polyline),
            distance_m=float(distance_m),
            travel_time_s=float(travel_time_s),
        )
