import threading
import time
from datetime import datetime, timedelta, timezone

import pytest
import requests

from routing.errors import ProviderError
from routing.models import Coordinate, RouteCandidate
from tracking.models import DeviationWarning, LocationSample
from tracking.policy import TrackingPolicy

T0 = datetime(2025, 5, 8, 10, 0, 0, tzinfo=timezone.utc)

BAKER_STREET = "221B Baker Street"
DOWNING_STREET = "10 Downing St"
DOWNING_COORD = Coordinate(51.5034, -0.1276)
KINGS_CROSS_COORD = Coordinate(51.5308, -0.1238)


def sample_at(seconds: float, lat: float = 51.51, lon: float = -0.12) -> LocationSample:
    return LocationSample.new(lat, lon, T0 + timedelta(seconds=seconds))


def straight_route(start: Coordinate, end: Coordinate, distance_m: float, steps: int = 5) -> RouteCandidate:
    polyline = [start] + [
        Coordinate(
            start.latitude + (end.latitude - start.latitude) * i / steps,
            start.longitude + (end.longitude - start.longitude) * i / steps,
        )
        for i in range(1, steps)
    ] + [end]
    return RouteCandidate.new(polyline, distance_m=distance_m, travel_time_s=distance_m / 10)


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeGeocoder:
    """Address -> Coordinate lookup; unknown addresses have no match."""

    def __init__(self, known=None, failing=()):
        self.known = dict(known or {})
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def geocode(self, address):
        with self._lock:
            self.calls.append(address)
        if address in self.failing:
            raise ProviderError(f"geocoder down for {address}")
        return self.known.get(address)


class FakeDirections:
    def __init__(self, candidates=None, error=None):
        self.candidates = list(candidates or [])
        self.error = error
        self.calls = []

    def request_directions(self, origin, destination, alternates):
        self.calls.append((origin, destination, alternates))
        if self.error is not None:
            raise self.error
        return list(self.candidates)


class FakeTripData:
    """
    In-memory backend. `gate`, when set, blocks every live fetch until released
    so tests can hold a tick in flight.
    """

    def __init__(self, trip_id="trip-1", latest=None, history=None, warnings=None):
        self.trip_id = trip_id
        self.latest = latest
        self.history = list(history or [])
        self.warnings = list(warnings or [])
        self.errors = {}
        self.gate = None
        self.fetch_started = threading.Event()
        self.calls = []
        self._lock = threading.Lock()

    def _enter(self, name, *args):
        with self._lock:
            self.calls.append((name,) + args)
        self.fetch_started.set()
        if self.gate is not None:
            assert self.gate.wait(5.0), "gate never released"
        if name in self.errors:
            raise self.errors[name]

    def fetch_trip_id_for_consignment(self, consignment_id):
        if "trip" in self.errors:
            raise self.errors["trip"]
        return self.trip_id

    def fetch_latest_location(self, trip_id):
        self._enter("latest", trip_id)
        return self.latest

    def fetch_location_history(self, trip_id, limit, since=None):
        self._enter("history", trip_id, limit, since)
        samples = [s for s in self.history if since is None or s.captured_at > since]
        return samples[-limit:]

    def fetch_deviation_warnings(self, trip_id):
        self._enter("deviations", trip_id)
        return list(self.warnings)

    def count(self, name):
        with self._lock:
            return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def slow_policy():
    # one immediate tick, then nothing for the rest of the test
    return TrackingPolicy(poll_interval_seconds=3600, history_limit=50, history_cap=200)


@pytest.fixture
def warning():
    return DeviationWarning(timestamp=T0, distance_from_route_m=640.0, details="Left planned route")


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if self.text is not None:
            raise ValueError("not JSON")
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Stands in for requests.Session: replays canned responses, records calls."""

    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)
