"""
Purpose: Recurring live-location fetches for one trip.
What it does:
Every poll interval, fetches (concurrently) the latest sample, a bounded
history slice and the deviation warnings of a trip, then hands the combined
TickResult to its owner.

Lifecycle: IDLE -> ACTIVE -> STOPPED (see state_machines/poller_state.py).
start() returns a PollHandle; stop() takes it (or nothing) and is idempotent.

Cancellation rule: a tick result is only delivered while its handle is still
the active one, and delivery happens under the poller lock. stop() flips the
handle under the same lock, so once stop() returns no late tick can write
into the owner's buffers.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from routing.errors import ProviderError
from tracking.models import DeviationWarning, LocationSample, TripId
from tracking.policy import TrackingPolicy, default_tracking_policy
from tracking.state_machines.poller_state import PollerState, transition_poller

logger = logging.getLogger(__name__)


class FetchKind(str, Enum):
    LATEST = "latest"
    HISTORY = "history"
    DEVIATIONS = "deviations"


class TickStatus(str, Enum):
    OK = "ok"
    PARTIAL = "partial"            # at least one fetch failed, at least one succeeded
    FAILED = "failed"              # every fetch failed
    MISSING_IDENTITY = "missing_identity"


@dataclass(frozen=True)
class PollHandle:
    """Ticket returned by start(); identifies one activation of the poller."""
    trip_id: Optional[TripId]
    generation: int


@dataclass(frozen=True)
class TickResult:
    """
    Outcome of one tick. A fetch that failed leaves its field empty/None and
    records its error under its FetchKind.
    """
    trip_id: Optional[TripId]
    status: TickStatus
    started_at: datetime
    latest: Optional[LocationSample] = None
    history: Tuple[LocationSample, ...] = ()
    deviation_warnings: Optional[Tuple[DeviationWarning, ...]] = None
    errors: Dict[FetchKind, ProviderError] = field(default_factory=dict)
    succeeded: FrozenSet[FetchKind] = frozenset()


class LiveLocationPoller:
    """
    Periodic fetcher for a trip's live data.

    Args:
        data_source: object with fetch_latest_location / fetch_location_history /
            fetch_deviation_warnings (e.g. TripDataClient)
        on_tick: called with every applied TickResult, under the poller lock
        policy: poll interval and history limit
        history_since: returns the newest captured_at already held by the owner,
            so only newer history is requested
    """

    def __init__(
        self,
        data_source,
        on_tick: Callable[[TickResult], None],
        policy: Optional[TrackingPolicy] = None,
        history_since: Optional[Callable[[], Optional[datetime]]] = None,
    ):
        self.data_source = data_source
        self.on_tick = on_tick
        self.policy = policy or default_tracking_policy()
        self.history_since = history_since

        self._lock = threading.RLock()
        self._state = PollerState.IDLE
        self._generation = 0
        self._active: Optional[PollHandle] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._tick_pool: Optional[ThreadPoolExecutor] = None

        # most recent error per fetch kind; replaced, never accumulated
        self.last_errors: Dict[FetchKind, ProviderError] = {}

    # --- Public API ---

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def handle(self) -> Optional[PollHandle]:
        return self._active

    def start(self, trip_id: Optional[TripId]) -> PollHandle:
        """
        IDLE -> ACTIVE. Fires a first tick right away, then one every
        poll_interval_seconds until stop().
        """
        with self._lock:
            self._state = transition_poller(self._state, PollerState.ACTIVE)
            self._generation += 1
            handle = PollHandle(trip_id=trip_id, generation=self._generation)
            self._active = handle
            self._stop_event.clear()
            # ticks are independent and may overlap
            self._tick_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix=f"poll-{trip_id}")
            self._thread = threading.Thread(
                target=self._run_loop, args=(handle,), name=f"poller-{trip_id}", daemon=True
            )
            self._thread.start()

        logger.info("Poller started for trip %s every %.1fs", trip_id, self.policy.poll_interval_seconds)
        return handle

    def stop(self, handle: Optional[PollHandle] = None) -> None:
        """
        ACTIVE -> STOPPED. Idempotent; a stale handle is ignored. After this
        returns no tick result is delivered to on_tick.
        """
        with self._lock:
            if handle is not None and handle != self._active:
                return
            if self._state == PollerState.STOPPED:
                return

            self._state = transition_poller(self._state, PollerState.STOPPED)
            stopped = self._active
            self._active = None
            self._stop_event.set()
            if self._tick_pool is not None:
                self._tick_pool.shutdown(wait=False, cancel_futures=True)
            self._thread = None

        # the loop thread exits on its own once the event is set
        logger.info("Poller stopped for trip %s", stopped.trip_id if stopped else None)

    def tick(self, handle: Optional[PollHandle] = None) -> Optional[TickResult]:
        """
        Runs one tick synchronously for handle (default: the active one).
        Returns the TickResult if it was applied, None if it was discarded.
        """
        handle = handle or self._active
        if handle is None:
            return None

        result = self._collect(handle.trip_id)
        if self._apply(handle, result):
            return result
        return None

    # --- Internals ---

    def _run_loop(self, handle: PollHandle) -> None:
        while not self._stop_event.is_set():
            with self._lock:
                if self._active != handle:
                    break
                future = self._tick_pool.submit(self.tick, handle)
            future.add_done_callback(self._log_tick_failure)
            if self._stop_event.wait(self.policy.poll_interval_seconds):
                break

    @staticmethod
    def _log_tick_failure(future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Poll tick crashed: %r", exc)

    def _fetch(self, kind: FetchKind, trip_id: TripId):
        if kind == FetchKind.LATEST:
            return self.data_source.fetch_latest_location(trip_id)
        if kind == FetchKind.HISTORY:
            since = self.history_since() if self.history_since else None
            return self.data_source.fetch_location_history(trip_id, self.policy.history_limit, since=since)
        return self.data_source.fetch_deviation_warnings(trip_id)

    def _collect(self, trip_id: Optional[TripId]) -> TickResult:
        started_at = datetime.now(timezone.utc)

        if not trip_id:
            logger.info("Poll tick skipped: trip identity missing")
            return TickResult(trip_id=None, status=TickStatus.MISSING_IDENTITY, started_at=started_at)

        values = {}
        errors: Dict[FetchKind, ProviderError] = {}
        with ThreadPoolExecutor(max_workers=len(FetchKind), thread_name_prefix="fetch") as pool:
            futures = {kind: pool.submit(self._fetch, kind, trip_id) for kind in FetchKind}
            for kind, future in futures.items():
                try:
                    values[kind] = future.result()
                except ProviderError as exc:
                    logger.warning("Fetching %s for trip %s failed: %s", kind.value, trip_id, exc)
                    errors[kind] = exc
                except Exception as exc:
                    logger.exception("Unexpected error fetching %s for trip %s", kind.value, trip_id)
                    errors[kind] = ProviderError(f"{kind.value} fetch failed: {exc}")

        if not errors:
            status = TickStatus.OK
        elif values:
            status = TickStatus.PARTIAL
        else:
            status = TickStatus.FAILED

        warnings = values.get(FetchKind.DEVIATIONS)
        return TickResult(
            trip_id=trip_id,
            status=status,
            started_at=started_at,
            latest=values.get(FetchKind.LATEST),
            history=tuple(values.get(FetchKind.HISTORY) or ()),
            deviation_warnings=tuple(warnings) if warnings is not None else None,
            errors=errors,
            succeeded=frozenset(values),
        )

    def _apply(self, handle: PollHandle, result: TickResult) -> bool:
        with self._lock:
            if self._state != PollerState.ACTIVE or self._active != handle:
                logger.warning("Discarding late tick for trip %s (poller stopped)", handle.trip_id)
                return False

            for kind in result.succeeded:
                self.last_errors.pop(kind, None)
            self.last_errors.update(result.errors)

            self.on_tick(result)
            return True
