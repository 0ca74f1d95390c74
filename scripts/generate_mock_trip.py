import numpy as np
import pandas as pd
from datetime import datetime, timezone, timedelta

# Central London: Downing Street -> Kings Cross
PICKUP = (51.5034, -0.1276)
DROP = (51.5308, -0.1238)


def generate_mock_trip(num_samples=180, interval_s=10, trip_id="trip-sim-001",
                       output_file="mock_trip_samples.csv", warnings_file="mock_trip_warnings.csv",
                       detour_at=0.55, seed=None):
    """
    Generates a replayable driver trace for one trip: GPS fixes every interval_s
    seconds along the pickup -> drop line, with jitter and a detour in the middle
    of the trip so the replay also has deviation warnings to show.
    """
    rng = np.random.default_rng(seed)
    start = datetime.now(timezone.utc) - timedelta(seconds=num_samples * interval_s)

    # 1. Progress along the route, with the vehicle sometimes stopped at lights
    steps = rng.uniform(0.3, 1.0, num_samples)
    steps[rng.random(num_samples) < 0.1] = 0.0
    progress = np.cumsum(steps)
    progress = progress / progress[-1]

    lat = PICKUP[0] + (DROP[0] - PICKUP[0]) * progress
    lon = PICKUP[1] + (DROP[1] - PICKUP[1]) * progress

    # 2. Detour: push the vehicle ~600m west for a stretch of the trip
    detour = np.exp(-((progress - detour_at) ** 2) / 0.004) * 0.009
    lon = lon - detour

    # 3. GPS jitter (~5m)
    lat = lat + rng.normal(0, 0.00004, num_samples)
    lon = lon + rng.normal(0, 0.00006, num_samples)

    timestamps = [start + timedelta(seconds=i * interval_s) for i in range(num_samples)]
    samples = pd.DataFrame({
        "trip_id": trip_id,
        "latitude": np.round(lat, 6),
        "longitude": np.round(lon, 6),
        "timestamp": [t.isoformat() for t in timestamps],
    })
    samples.to_csv(output_file, index=False)
    print(f"✅ Generated {num_samples} samples for {trip_id} and saved to '{output_file}'")

    # 4. A warning for every fix more than ~300m off the straight line
    offset_m = detour * 111_320.0 * np.cos(np.radians(lat))
    off_route = samples[offset_m > 300.0].copy()
    off_route["distance_from_route"] = np.round(offset_m[offset_m > 300.0], 1)
    warnings = pd.DataFrame({
        "trip_id": trip_id,
        "timestamp": off_route["timestamp"],
        "distance_from_route": off_route["distance_from_route"],
        "details": "Vehicle left the planned route",
        "deviation_latitude": off_route["latitude"],
        "deviation_longitude": off_route["longitude"],
    })
    warnings.to_csv(warnings_file, index=False)
    print(f"✅ Generated {len(warnings)} deviation warnings and saved to '{warnings_file}'")

    if len(warnings):
        print(f"\nMax deviation: {warnings['distance_from_route'].max():.0f}m")


if __name__ == "__main__":
    generate_mock_trip(seed=7)
