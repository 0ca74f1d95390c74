"""
Purpose: Core data models for the live tracking domain.
What it does:
- LocationSample (coordinate + capture time), produced by the backend
- DeviationWarning (precomputed off-route alert), read-only here
- PathHistory: bounded, time-ordered trail of samples for one trip

Rule: No HTTP calls, no polling. Models only.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Iterable, Optional, Tuple

from routing.models import Coordinate

TripId = str

DEFAULT_HISTORY_CAP = 200


@dataclass(frozen=True)
class LocationSample:
    """
    One GPS fix reported by the driver's device.
    """
    coordinate: Coordinate
    captured_at: datetime

    @classmethod
    def new(cls, lat: float, lon: float, captured_at: datetime) -> LocationSample:
        return cls(coordinate=Coordinate(latitude=lat, longitude=lon), captured_at=captured_at)


@dataclass(frozen=True)
class DeviationWarning:
    """
    Alert that the vehicle left the planned route, computed server side.
    """
    timestamp: Optional[datetime]
    distance_from_route_m: Optional[float]
    details: Optional[str] = None

    # where the deviation happened, if the backend recorded it
    deviation_coordinate: Optional[Coordinate] = None
    acknowledged_by_admin_at: Optional[datetime] = None
    acknowledged_by_driver_at: Optional[datetime] = None


class PathHistory:
    """
    Append-only FIFO trail of LocationSample with a fixed cap.

    - merge() keeps captured_at non-decreasing: a batch is sorted (stable) and
      samples older than the newest retained one are skipped.
    - Equal timestamps are kept as-is; de-duplication is the provider's job.
    - Once the cap is exceeded the oldest samples fall off (positional, not LRU).
    """

    def __init__(self, cap: int = DEFAULT_HISTORY_CAP):
        if cap <= 0:
            raise ValueError("history cap must be > 0")
        self.cap = cap
        self._samples: Deque[LocationSample] = deque(maxlen=cap)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    @property
    def newest(self) -> Optional[LocationSample]:
        return self._samples[-1] if self._samples else None

    def merge(self, samples: Iterable[LocationSample]) -> int:
        """
        Appends the samples that keep the trail time-ordered.
        Returns how many were appended (some may already have been evicted).
        """
        appended = 0
        for sample in sorted(samples, key=lambda s: s.captured_at):
            newest = self.newest
            if newest is not None and sample.captured_at < newest.captured_at:
                continue
            self._samples.append(sample)
            appended += 1
        return appended

    def snapshot(self) -> Tuple[LocationSample, ...]:
        return tuple(self._samples)

    def coordinates(self) -> Tuple[Coordinate, ...]:
        return tuple(sample.coordinate for sample in self._samples)

    def clear(self) -> None:
        self._samples.clear()
