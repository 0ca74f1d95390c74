"""
Purpose: Address -> coordinate resolution (forward geocoding).
What it does:
- NominatimGeocoder: HTTP adapter for the OpenStreetMap Nominatim /search API.
  Returns a Coordinate, or None when Nominatim has no match.
- GeocodingPipeline: the engine-facing contract. Rejects blank input,
  turns "no match" into NotFound, and resolves pickup/drop concurrently.

Rule: one outbound call per resolve, no retries, no shared mutable state
between concurrent calls.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

import requests
from dotenv import load_dotenv

from routing.errors import NotFound, ProviderError, TrackingError
from routing.models import Coordinate

load_dotenv()
NOMINATIM_BASE_URL = os.getenv("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org")
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "passl-tracking/0.1.0 (set NOMINATIM_USER_AGENT)")

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    """
    Nominatim forward geocoder.

    Nominatim is rate limited and requires a descriptive User-Agent; set
    NOMINATIM_USER_AGENT (or point NOMINATIM_BASE_URL at your own instance).
    """

    def __init__(self, base_url: str = NOMINATIM_BASE_URL, user_agent: str = NOMINATIM_USER_AGENT,
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.session = session or requests.Session()

    def geocode(self, address: str) -> Optional[Coordinate]:
        """
        Returns the best match for the address, or None when there is no match.

        Raises:
            ProviderError on transport failure, non-2xx status or a bad payload.
        """
        try:
            response = self.session.get(
                f"{self.base_url}/search",
                params={"q": address, "format": "jsonv2", "limit": "1"},
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            results = response.json()
        except requests.RequestException as exc:
            raise ProviderError(f"Nominatim request failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError("Nominatim returned a non-JSON response") from exc

        if not results:
            return None

        try:
            best = results[0]
            return Coordinate(latitude=float(best["lat"]), longitude=float(best["lon"]))
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            raise ProviderError(f"Nominatim returned a malformed result: {exc}") from exc


@dataclass(frozen=True)
class GeocodeOutcome:
    """
    Result of resolving one address: either a coordinate or the error that
    prevented it (NotFound / ProviderError).
    """
    address: str
    coordinate: Optional[Coordinate] = None
    error: Optional[TrackingError] = None

    @property
    def resolved(self) -> bool:
        return self.coordinate is not None

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, NotFound)


class GeocodingPipeline:
    """
    resolve(address) -> Coordinate, raising NotFound or ProviderError.
    """

    def __init__(self, geocoder):
        self.geocoder = geocoder

    def resolve(self, address: str) -> Coordinate:
        if address is None or not address.strip():
            raise ValueError("address must be a non-empty string")

        coordinate = self.geocoder.geocode(address.strip())
        if coordinate is None:
            logger.info("No geocoding result for %r", address)
            raise NotFound(f"No result for address {address!r}")
        return coordinate

    def _outcome(self, address: str) -> GeocodeOutcome:
        try:
            return GeocodeOutcome(address=address, coordinate=self.resolve(address))
        except NotFound as exc:
            return GeocodeOutcome(address=address, error=exc)
        except ProviderError as exc:
            logger.warning("Geocoding %r failed: %s", address, exc)
            return GeocodeOutcome(address=address, error=exc)

    def resolve_pair(self, pickup_address: str, drop_address: str) -> Tuple[GeocodeOutcome, GeocodeOutcome]:
        """
        Resolves pickup and drop concurrently. Blank addresses still raise
        ValueError (caller error); provider outcomes come back per address.
        """
        for address in (pickup_address, drop_address):
            if address is None or not address.strip():
                raise ValueError("address must be a non-empty string")

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="geocode") as pool:
            pickup_future = pool.submit(self._outcome, pickup_address)
            drop_future = pool.submit(self._outcome, drop_address)
            return pickup_future.result(), drop_future.result()
