"""
Purpose: Camera framing for the live tracking map.
What it does:
Computes the viewport that keeps the route, the endpoints and the vehicle
in view. Pure function: same inputs -> same viewport, no state kept, inputs
never retained. When to re-fit (throttling / animation) is the caller's call.

Framing rules, in order:
1. Route polyline present and non-degenerate -> route bounding box, extended
   minimally to include any point outside it (the route frame dominates).
2. Otherwise, at least one point -> bounding box of the points.
3. Nothing at all -> Viewport.automatic_viewport() (renderer picks a default).
4. Zero-area box (single point) -> fixed-size region centred on that point.
5. Pad the result by padding_factor.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from routing.models import Coordinate

DEFAULT_PADDING_FACTOR = 0.35
DEFAULT_DEGENERATE_REGION_M = 2000.0

# mean length of one degree of latitude
METERS_PER_DEGREE_LAT = 111_320.0


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @classmethod
    def around(cls, coordinates: Iterable[Coordinate]) -> Optional[BoundingBox]:
        """Bounding box of the coordinates, or None if there are none."""
        points = np.array([(c.latitude, c.longitude) for c in coordinates], dtype=float)
        if points.size == 0:
            return None
        lows = points.min(axis=0)
        highs = points.max(axis=0)
        return cls(
            min_lat=float(lows[0]),
            min_lon=float(lows[1]),
            max_lat=float(highs[0]),
            max_lon=float(highs[1]),
        )

    @classmethod
    def region(cls, center: Coordinate, span_m: float) -> BoundingBox:
        """A span_m x span_m box centred on center."""
        half_lat = (span_m / METERS_PER_DEGREE_LAT) / 2
        cos_lat = math.cos(math.radians(center.latitude))
        if cos_lat < 1e-6:
            half_lon = 180.0
        else:
            half_lon = min((span_m / (METERS_PER_DEGREE_LAT * cos_lat)) / 2, 180.0)
        return cls(
            min_lat=max(center.latitude - half_lat, -90.0),
            min_lon=max(center.longitude - half_lon, -180.0),
            max_lat=min(center.latitude + half_lat, 90.0),
            max_lon=min(center.longitude + half_lon, 180.0),
        )

    @property
    def width(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def height(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def is_degenerate(self) -> bool:
        return self.width == 0 and self.height == 0

    @property
    def center(self) -> Coordinate:
        return Coordinate(
            latitude=(self.min_lat + self.max_lat) / 2,
            longitude=(self.min_lon + self.max_lon) / 2,
        )

    def contains(self, coordinate: Coordinate) -> bool:
        return (
            self.min_lat <= coordinate.latitude <= self.max_lat
            and self.min_lon <= coordinate.longitude <= self.max_lon
        )

    def contains_box(self, other: BoundingBox) -> bool:
        return (
            self.min_lat <= other.min_lat and other.max_lat <= self.max_lat
            and self.min_lon <= other.min_lon and other.max_lon <= self.max_lon
        )

    def union(self, coordinate: Coordinate) -> BoundingBox:
        return BoundingBox(
            min_lat=min(self.min_lat, coordinate.latitude),
            min_lon=min(self.min_lon, coordinate.longitude),
            max_lat=max(self.max_lat, coordinate.latitude),
            max_lon=max(self.max_lon, coordinate.longitude),
        )

    def padded(self, factor: float) -> BoundingBox:
        """Grow width/height by factor, half on each side; clamped to valid lat/lon."""
        pad_lat = self.height * factor / 2
        pad_lon = self.width * factor / 2
        return BoundingBox(
            min_lat=max(self.min_lat - pad_lat, -90.0),
            min_lon=max(self.min_lon - pad_lon, -180.0),
            max_lat=min(self.max_lat + pad_lat, 90.0),
            max_lon=min(self.max_lon + pad_lon, 180.0),
        )


@dataclass(frozen=True)
class Viewport:
    """
    Visible map region. automatic=True means "no constraint", the renderer
    decides; center/spans are None in that case.
    """
    center: Optional[Coordinate]
    latitude_span: float
    longitude_span: float
    padding_factor: float
    automatic: bool = False
    bounds: Optional[BoundingBox] = None

    @classmethod
    def automatic_viewport(cls, padding_factor: float = DEFAULT_PADDING_FACTOR) -> Viewport:
        return cls(center=None, latitude_span=0.0, longitude_span=0.0,
                   padding_factor=padding_factor, automatic=True)

    @classmethod
    def from_box(cls, box: BoundingBox, padding_factor: float) -> Viewport:
        return cls(
            center=box.center,
            latitude_span=box.height,
            longitude_span=box.width,
            padding_factor=padding_factor,
            bounds=box,
        )


def _route_box(route_polyline: Optional[Sequence[Coordinate]]) -> Optional[BoundingBox]:
    if not route_polyline or len(route_polyline) < 2:
        return None
    box = BoundingBox.around(route_polyline)
    if box is None or box.is_degenerate:
        return None
    return box


def fit(
    points: Iterable[Optional[Coordinate]],
    route_polyline: Optional[Sequence[Coordinate]] = None,
    padding_factor: float = DEFAULT_PADDING_FACTOR,
    degenerate_region_m: float = DEFAULT_DEGENERATE_REGION_M,
) -> Viewport:
    """
    Frames the map around the route and the known points.

    Args:
        points: pickup / drop / live position; None entries are ignored
        route_polyline: the rendered route, if any
        padding_factor: fraction added to the width and height (0.35 -> 35%)
        degenerate_region_m: size of the region used for a single point

    Returns:
        Viewport (automatic when there is nothing to frame)
    """
    known = [point for point in points if point is not None]

    box = _route_box(route_polyline)
    if box is not None:
        for point in known:
            if not box.contains(point):
                box = box.union(point)
    elif known:
        box = BoundingBox.around(known)
    else:
        return Viewport.automatic_viewport(padding_factor)

    if box.is_degenerate:
        box = BoundingBox.region(box.center, degenerate_region_m)

    return Viewport.from_box(box.padded(padding_factor), padding_factor)
