"""
Purpose: Central configuration for live tracking (single source of truth).
What it does:

Stores all tunable thresholds/caps for a tracking session:

POLL_INTERVAL_SECONDS = 10
HISTORY_LIMIT = 200      (samples per history fetch)
HISTORY_CAP = 200        (samples kept in the trail)
PADDING_FACTOR = 0.35
DEGENERATE_REGION_M = 2000

Values can be overridden from the environment (.env supported).

Rule: No logic here—just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class TrackingPolicy:
    """
    Central configuration for polling, history and camera framing.
    """

    # --- Poller ---
    # Seconds between two ticks of the live location poller.
    poll_interval_seconds: float = 10.0

    # Max samples requested from the backend per history fetch.
    history_limit: int = 200

    # --- Path history ---
    # Max samples kept in the trail; oldest drop off first.
    history_cap: int = 200

    # --- Camera ---
    # The framed rectangle grows by this fraction of its width/height.
    padding_factor: float = 0.35

    # Width/height of the region used when everything collapses to one point.
    degenerate_region_m: float = 2000.0

    # --- Routing ---
    # Ask the directions provider for alternates (enables the "shortest" toggle).
    request_alternates: bool = True

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")

        if self.history_limit <= 0:
            raise ValueError("history_limit must be > 0")

        if self.history_cap <= 0:
            raise ValueError("history_cap must be > 0")

        if self.padding_factor < 0:
            raise ValueError("padding_factor must be >= 0")

        if self.degenerate_region_m <= 0:
            raise ValueError("degenerate_region_m must be > 0")

    @classmethod
    def from_env(cls) -> TrackingPolicy:
        """
        Builds a policy from TRACKING_* environment variables, falling back
        to the defaults above.
        """
        load_dotenv()
        defaults = cls()
        policy = cls(
            poll_interval_seconds=float(os.getenv("TRACKING_POLL_INTERVAL_S", defaults.poll_interval_seconds)),
            history_limit=int(os.getenv("TRACKING_HISTORY_LIMIT", defaults.history_limit)),
            history_cap=int(os.getenv("TRACKING_HISTORY_CAP", defaults.history_cap)),
            padding_factor=float(os.getenv("TRACKING_PADDING_FACTOR", defaults.padding_factor)),
            degenerate_region_m=float(os.getenv("TRACKING_DEGENERATE_REGION_M", defaults.degenerate_region_m)),
            request_alternates=os.getenv(
                "TRACKING_REQUEST_ALTERNATES", str(defaults.request_alternates)
            ).strip().lower() in ("1", "true", "yes"),
        )
        policy.validate()
        return policy


def default_tracking_policy() -> TrackingPolicy:
    """
    Convenience factory for the default policy.
    """
    p = TrackingPolicy()
    p.validate()
    return p
