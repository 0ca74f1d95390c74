#Purpose: The OSRM “adapter/client” used as the directions provider.
#Sole responsibility: talk to OSRM via HTTP and return normalized outputs.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/route)
#error handling (transport errors and OSRM codes -> ProviderError)
#parsing GeoJSON geometry into RouteCandidate polylines
#It should not contain route selection rules.

import logging
import os
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

from routing.errors import ProviderError
from routing.models import Coordinate, RouteCandidate

# Read OSRM base URL from environment
# Example in .env:
# OSRM_BASE_URL=http://router.project-osrm.org
load_dotenv()
BASE_URL = os.getenv("OSRM_BASE_URL")
PROFILE = os.getenv("OSRM_PROFILE", "driving")

logger = logging.getLogger(__name__)

# OSRM answers with this code when both points snap but no path connects them
NO_ROUTE_CODE = "NoRoute"


class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal Coordinate -> OSRM (lon,lat)
    - Return RouteCandidate objects in provider order

    """
    def __init__(self, base_url: Optional[str] = None, profile: str = PROFILE, timeout: int = 5,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url or BASE_URL
        self.timeout = timeout #the time to wait for a response from OSRM before giving up
        self.profile = profile #the mode of transportation (driving, walking, cycling)
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set OSRM_BASE_URL in the .env file.")

    #----------------
    # Internal helper methods
    #----------------
    def format_coordinates(self, coords: List[Coordinate]) -> str:
        """Convert list of Coordinate to OSRM format 'lon,lat;lon,lat;...'"""
        return ';'.join([f"{c.longitude},{c.latitude}" for c in coords])

    def _get_json(self, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ProviderError(f"OSRM request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"OSRM returned a non-JSON response (HTTP {response.status_code})") from exc

        if not isinstance(data, dict):
            raise ProviderError("OSRM returned an unexpected payload")
        return data

    @staticmethod
    def _parse_route(route: Dict[str, Any]) -> RouteCandidate:
        geometry = route.get("geometry") or {}
        # GeoJSON stores [lon, lat]
        polyline = [
            Coordinate(latitude=float(lat), longitude=float(lon))
            for lon, lat in geometry.get("coordinates", [])
        ]
        return RouteCandidate.new(
            polyline=polyline,
            distance_m=route["distance"],
            travel_time_s=route["duration"],
        )

    #----------------
    # Public methods
    #----------------
    def request_directions(self, origin: Coordinate, destination: Coordinate,
                           alternates: bool = False) -> List[RouteCandidate]:
        """
        calls the OSRM /route endpoint between origin and destination and
        returns every route OSRM produced, in provider order.
        The HTTP status is not checked: OSRM reports NoRoute with a 400.

        Returns:
            [] when OSRM answers NoRoute, otherwise one RouteCandidate per route.

        Raises:
            ProviderError on transport failures or any other OSRM error code.
        """
        coordinates = self.format_coordinates([origin, destination])
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinates}"

        data = self._get_json(
            url,
            params={
                "alternatives": "true" if alternates else "false",
                "overview": "full", # we need the geometry for the map polyline
                "geometries": "geojson",
            },
        )

        code = data.get("code")
        if code == NO_ROUTE_CODE:
            logger.info("OSRM found no route between %s and %s", origin, destination)
            return []
        if code != "Ok":
            raise ProviderError(f"OSRM error: {data.get('message', code or 'Unknown error')}")

        try:
            return [self._parse_route(route) for route in data.get("routes", [])]
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError(f"OSRM returned a malformed route: {exc}") from exc
