#Purpose: The backend "adapter/client" for live trip data.
#Sole responsibility: talk to the Supabase REST (PostgREST) API over HTTP and
#return normalized tracking models.
#Tables used:
#trips                    -> consignment -> trip id lookup
#driver_locations         -> latest sample + history slice
#route_deviation_warnings -> precomputed off-route alerts
#It should not contain polling or merge rules.

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

from routing.errors import ProviderError
from routing.models import Coordinate
from tracking.models import DeviationWarning, LocationSample, TripId

# Example in .env:
# SUPABASE_URL=https://<project>.supabase.co
# SUPABASE_KEY=<anon or service key>
load_dotenv()
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a PostgREST timestamp ('2025-05-08T10:15:30.12+00:00' or '...Z')."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _optional_coordinate(lat: Any, lon: Any) -> Optional[Coordinate]:
    if lat is None or lon is None:
        return None
    return Coordinate(latitude=float(lat), longitude=float(lon))


class TripDataClient:
    """
    Supabase adapter / client for trip tracking data.

    Implements:
    - fetch_trip_id_for_consignment(consignment_id) -> Optional[TripId]
    - fetch_latest_location(trip_id) -> Optional[LocationSample]
    - fetch_location_history(trip_id, limit, since=None) -> List[LocationSample]
    - fetch_deviation_warnings(trip_id) -> List[DeviationWarning]
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: int = 10, session: Optional[requests.Session] = None):
        self.base_url = (base_url or SUPABASE_URL or "").rstrip("/")
        self.api_key = api_key or SUPABASE_KEY
        self.timeout = timeout
        self.session = session or requests.Session()

        if not self.base_url or not self.api_key:
            raise ValueError("Supabase URL/key not set. Please set SUPABASE_URL and SUPABASE_KEY in the .env file.")

    #----------------
    # Internal helpers
    #----------------
    def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/rest/v1/{table}"
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            rows = response.json()
        except requests.RequestException as exc:
            raise ProviderError(f"Supabase request to {table} failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(f"Supabase returned a non-JSON response for {table}") from exc

        if not isinstance(rows, list):
            raise ProviderError(f"Supabase returned an unexpected payload for {table}")
        return rows

    @staticmethod
    def _to_sample(row: Dict[str, Any]) -> LocationSample:
        captured_at = parse_timestamp(row.get("timestamp") or row.get("created_at"))
        if captured_at is None:
            raise ValueError("location row without timestamp")
        return LocationSample(
            coordinate=Coordinate(latitude=float(row["latitude"]), longitude=float(row["longitude"])),
            captured_at=captured_at,
        )

    @staticmethod
    def _to_warning(row: Dict[str, Any]) -> DeviationWarning:
        distance = row.get("distance_from_route")
        return DeviationWarning(
            timestamp=parse_timestamp(row.get("timestamp")),
            distance_from_route_m=float(distance) if distance is not None else None,
            details=row.get("details"),
            deviation_coordinate=_optional_coordinate(row.get("deviation_latitude"), row.get("deviation_longitude")),
            acknowledged_by_admin_at=parse_timestamp(row.get("acknowledged_by_admin_at")),
            acknowledged_by_driver_at=parse_timestamp(row.get("acknowledged_by_driver_at")),
        )

    def _parse_rows(self, rows, parser, table: str) -> list:
        try:
            return [parser(row) for row in rows]
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError(f"Malformed row in {table}: {exc}") from exc

    #----------------
    # Public methods
    #----------------
    def fetch_trip_id_for_consignment(self, consignment_id: str) -> Optional[TripId]:
        rows = self._select(
            "trips",
            {"select": "id", "consignment_id": f"eq.{consignment_id}", "order": "created_at.desc", "limit": "1"},
        )
        if not rows:
            logger.info("No trip linked to consignment %s", consignment_id)
            return None
        return str(rows[0]["id"])

    def fetch_latest_location(self, trip_id: TripId) -> Optional[LocationSample]:
        rows = self._select(
            "driver_locations",
            {"select": "latitude,longitude,timestamp,created_at", "trip_id": f"eq.{trip_id}",
             "order": "timestamp.desc", "limit": "1"},
        )
        samples = self._parse_rows(rows, self._to_sample, "driver_locations")
        return samples[0] if samples else None

    def fetch_location_history(self, trip_id: TripId, limit: int,
                               since: Optional[datetime] = None) -> List[LocationSample]:
        """
        Newest `limit` samples (optionally only those after `since`),
        returned oldest first.
        """
        params = {
            "select": "latitude,longitude,timestamp,created_at",
            "trip_id": f"eq.{trip_id}",
            "order": "timestamp.desc",
            "limit": str(limit),
        }
        if since is not None:
            # strictly newer: gte would return the newest retained row again on every tick
            params["timestamp"] = f"gt.{since.isoformat()}"

        rows = self._select("driver_locations", params)
        samples = self._parse_rows(rows, self._to_sample, "driver_locations")
        samples.reverse()
        return samples

    def fetch_deviation_warnings(self, trip_id: TripId) -> List[DeviationWarning]:
        rows = self._select(
            "route_deviation_warnings",
            {"select": "*", "trip_id": f"eq.{trip_id}", "order": "timestamp.asc"},
        )
        return self._parse_rows(rows, self._to_warning, "route_deviation_warnings")
