import logging
import os
import time
from datetime import datetime, timedelta
from typing import List, Optional

import pandas as pd

from routing.geocoding import GeocodingPipeline, NominatimGeocoder
from routing.models import Coordinate, RouteCandidate
from routing.osrm_client import BASE_URL as OSRM_BASE_URL, OSRMClient
from routing.route_service import RouteRequestEngine, RouteType
from tracking.models import DeviationWarning, LocationSample
from tracking.policy import TrackingPolicy
from tracking.session import TrackingSessionController

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("tracking_simulation")

PICKUP_ADDRESS = "10 Downing Street, London"
DROP_ADDRESS = "Kings Cross Station, London"

# used instead of Nominatim when USE_NOMINATIM is not set
MOCK_ADDRESSES = {
    PICKUP_ADDRESS: Coordinate(51.5034, -0.1276),
    DROP_ADDRESS: Coordinate(51.5308, -0.1238),
}


class ReplayTripDataSource:
    """
    Serves a recorded trip (see generate_mock_trip.py) as if it was live: the
    replay clock starts at the first sample and runs `speedup` times faster than
    the wall clock, and only samples up to the replay clock are visible.
    """

    def __init__(self, samples: pd.DataFrame, warnings: Optional[pd.DataFrame] = None,
                 consignment_id="cons-sim-001", speedup=20.0):
        self.samples = samples.sort_values("timestamp").reset_index(drop=True)
        self.warnings = warnings if warnings is not None else pd.DataFrame()
        self.consignment_id = consignment_id
        self.trip_id = str(self.samples["trip_id"].iloc[0])
        self.speedup = speedup
        self.replay_start = self.samples["timestamp"].iloc[0]
        self.wall_start = time.monotonic()

    def now(self) -> datetime:
        elapsed = (time.monotonic() - self.wall_start) * self.speedup
        return self.replay_start + timedelta(seconds=elapsed)

    @property
    def finished(self) -> bool:
        return self.now() >= self.samples["timestamp"].iloc[-1]

    def _visible(self) -> pd.DataFrame:
        return self.samples[self.samples["timestamp"] <= self.now()]

    def fetch_trip_id_for_consignment(self, consignment_id: str) -> Optional[str]:
        return self.trip_id if consignment_id == self.consignment_id else None

    def fetch_latest_location(self, trip_id: str) -> Optional[LocationSample]:
        visible = self._visible()
        if visible.empty:
            return None
        row = visible.iloc[-1]
        return LocationSample.new(row["latitude"], row["longitude"], row["timestamp"].to_pydatetime())

    def fetch_location_history(self, trip_id: str, limit: int, since: Optional[datetime] = None) -> List[LocationSample]:
        visible = self._visible()
        if since is not None:
            visible = visible[visible["timestamp"] > since]
        return [
            LocationSample.new(row.latitude, row.longitude, row.timestamp.to_pydatetime())
            for row in visible.tail(limit).itertuples()
        ]

    def fetch_deviation_warnings(self, trip_id: str) -> List[DeviationWarning]:
        if self.warnings.empty:
            return []
        visible = self.warnings[self.warnings["timestamp"] <= self.now()]
        return [
            DeviationWarning(
                timestamp=row.timestamp.to_pydatetime(),
                distance_from_route_m=float(row.distance_from_route),
                details=row.details,
                deviation_coordinate=Coordinate(row.deviation_latitude, row.deviation_longitude),
            )
            for row in visible.itertuples()
        ]


class MockGeocoder:
    def geocode(self, address: str) -> Optional[Coordinate]:
        return MOCK_ADDRESSES.get(address)


class StraightLineDirections:
    """Directions stand-in when no OSRM server is configured."""

    def request_directions(self, origin: Coordinate, destination: Coordinate, alternates: bool = False):
        # ~1.3 road meters per straight-line meter, 30 km/h
        lat_m = (destination.latitude - origin.latitude) * 111_320.0
        lon_m = (destination.longitude - origin.longitude) * 111_320.0 * 0.62
        distance = 1.3 * (lat_m ** 2 + lon_m ** 2) ** 0.5
        return [RouteCandidate.new([origin, destination], distance_m=distance, travel_time_s=distance / 8.3)]


def load_trip(samples_file="mock_trip_samples.csv", warnings_file="mock_trip_warnings.csv"):
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

    samples = pd.read_csv(os.path.join(base_dir, samples_file))
    samples["timestamp"] = pd.to_datetime(samples["timestamp"], utc=True)

    warnings = None
    warnings_path = os.path.join(base_dir, warnings_file)
    if os.path.exists(warnings_path):
        warnings = pd.read_csv(warnings_path)
        warnings["timestamp"] = pd.to_datetime(warnings["timestamp"], utc=True)
    return samples, warnings


def run_simulation(speedup=20.0, max_seconds=120.0):
    print("=== STARTING LIVE TRACKING REPLAY ===")

    # 1. Load the recorded trip
    samples, warnings = load_trip()
    source = ReplayTripDataSource(samples, warnings, speedup=speedup)
    print(f"Loaded {len(samples)} samples for trip {source.trip_id}.\n")

    # 2. Wire providers (real ones when configured)
    if os.getenv("USE_NOMINATIM"):
        geocoder = NominatimGeocoder()
    else:
        geocoder = MockGeocoder()
    directions = OSRMClient() if OSRM_BASE_URL else StraightLineDirections()
    geocoding = GeocodingPipeline(geocoder)

    policy = TrackingPolicy(poll_interval_seconds=1.0, history_limit=50, history_cap=200)
    controller = TrackingSessionController(
        consignment_id=source.consignment_id,
        pickup_address=PICKUP_ADDRESS,
        drop_address=DROP_ADDRESS,
        trip_data=source,
        geocoding=geocoding,
        route_engine=RouteRequestEngine(directions, geocoding),
        policy=policy,
    )

    seen_warnings = 0

    def report(session):
        nonlocal seen_warnings
        if session.latest_sample is None:
            return
        viewport = session.viewport
        print(
            f"[{session.latest_sample.captured_at:%H:%M:%S}] "
            f"at {session.live_position.latitude:.5f},{session.live_position.longitude:.5f} "
            f"trail={len(session.path_history)} "
            f"view={viewport.latitude_span:.4f}x{viewport.longitude_span:.4f}"
        )
        if len(session.deviation_warnings) > seen_warnings:
            newest = session.deviation_warnings[-1]
            print(f"  [WARNING] {newest.details} ({newest.distance_from_route_m:.0f}m off route)")
            seen_warnings = len(session.deviation_warnings)

    controller.subscribe(report)

    # 3. Activate and let the poller run
    session = controller.activate()

    logger.info("Session %s: %s", session.status.value, session.status_reason or "live tracking running")
    if session.routes is not None:
        print(f"Route: {session.routes.primary.distance_m:.0f}m "
              f"(shortest of {len(session.routes.candidates)}: {session.routes.shortest.distance_m:.0f}m)")
        controller.select_route(RouteType.SHORTEST)

    deadline = time.monotonic() + max_seconds
    while not source.finished and time.monotonic() < deadline:
        time.sleep(0.5)

    # 4. Tear down
    controller.deactivate()
    final = controller.snapshot()
    print("\n=== REPLAY COMPLETE ===")
    print(f"Session status: {final.status.value}")
    print(f"Deviation warnings shown: {seen_warnings}")


if __name__ == "__main__":
    run_simulation()
