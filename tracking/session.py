"""
Purpose: Orchestrator for one trip-detail view (the "glue").
What it does:
activate():
  resolve trip identity -> geocode pickup/drop (parallel) -> request routes
  (only when both endpoints resolved) -> initial camera frame -> start poller
every applied poll tick:
  merge history, update latest sample / warnings, re-fit the camera,
  publish a new TrackingSession snapshot
deactivate():
  stop the poller first, then discard the buffers

State is exposed as immutable TrackingSession snapshots; renderers subscribe
instead of reading shared mutable state. Delivery is serialized and always
hands out the current snapshot: a thread that finds another one delivering
leaves the newer snapshot to it, so subscribers end on the latest state.

Lock order is always poller lock -> session lock (ticks are applied under the
poller lock). The poller is started and stopped outside the session lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from routing.errors import NoRouteFound, ProviderError, TrackingError
from routing.geocoding import GeocodingPipeline
from routing.models import Coordinate, RouteCandidate
from routing.route_service import RouteRequestEngine, RouteSet, RouteType
from tracking.camera import Viewport, fit
from tracking.errors import MissingIdentity
from tracking.models import DeviationWarning, LocationSample, PathHistory, TripId
from tracking.poller import FetchKind, LiveLocationPoller, TickResult, TickStatus
from tracking.policy import TrackingPolicy, default_tracking_policy
from tracking.state_machines.poller_state import PollerStateException

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"          # live tracking running
    DEGRADED = "degraded"    # no live tracking, static endpoints/route only
    ERROR = "error"          # nothing to show; see status_reason
    CLOSED = "closed"        # torn down


# keys of TrackingSession.errors
TRIP = "trip"
PICKUP = "pickup"
DROP = "drop"
ROUTE = "route"


@dataclass(frozen=True)
class TrackingSession:
    """
    Snapshot of everything the trip-detail map renders.
    """
    consignment_id: str
    pickup_address: str
    drop_address: str
    status: SessionStatus = SessionStatus.LOADING
    status_reason: Optional[str] = None

    trip_id: Optional[TripId] = None
    pickup: Optional[Coordinate] = None
    drop: Optional[Coordinate] = None

    routes: Optional[RouteSet] = None
    route_type: RouteType = RouteType.FULL

    latest_sample: Optional[LocationSample] = None
    path_history: Tuple[LocationSample, ...] = ()
    deviation_warnings: Tuple[DeviationWarning, ...] = ()

    viewport: Viewport = field(default_factory=Viewport.automatic_viewport)

    # per-piece failures (trip / pickup / drop / route) and per-fetch poll errors
    errors: Dict[str, TrackingError] = field(default_factory=dict)
    poll_errors: Dict[FetchKind, ProviderError] = field(default_factory=dict)
    last_tick_status: Optional[TickStatus] = None

    @property
    def selected_route(self) -> Optional[RouteCandidate]:
        if self.routes is None:
            return None
        return self.routes.select(self.route_type)

    @property
    def live_position(self) -> Optional[Coordinate]:
        return self.latest_sample.coordinate if self.latest_sample else None

    @property
    def trail(self) -> Tuple[Coordinate, ...]:
        return tuple(sample.coordinate for sample in self.path_history)


Subscriber = Callable[[TrackingSession], None]


class TrackingSessionController:
    """
    Owns the PathHistory, the latest sample and the poller of one trip view.

    Args:
        consignment_id / pickup_address / drop_address: what the view shows
        trip_data: fetch_trip_id_for_consignment + the poller fetches (TripDataClient)
        geocoding: GeocodingPipeline
        route_engine: RouteRequestEngine
        policy: TrackingPolicy (poll interval, caps, camera padding)
        poller_factory: builds the LiveLocationPoller (overridable in tests)
    """

    def __init__(
        self,
        consignment_id: str,
        pickup_address: str,
        drop_address: str,
        trip_data,
        geocoding: GeocodingPipeline,
        route_engine: RouteRequestEngine,
        policy: Optional[TrackingPolicy] = None,
        poller_factory: Callable[..., LiveLocationPoller] = LiveLocationPoller,
    ):
        self.trip_data = trip_data
        self.geocoding = geocoding
        self.route_engine = route_engine
        self.policy = policy or default_tracking_policy()
        self.poller_factory = poller_factory

        self._lock = threading.RLock()
        self._history = PathHistory(self.policy.history_cap)
        self._session = TrackingSession(
            consignment_id=consignment_id,
            pickup_address=pickup_address,
            drop_address=drop_address,
            viewport=Viewport.automatic_viewport(self.policy.padding_factor),
        )
        self._poller: Optional[LiveLocationPoller] = None
        self._activation = 0
        self._subscribers: List[Subscriber] = []

        # set when self._session changed and subscribers have not seen it yet
        self._dirty = False
        self._delivery_lock = threading.Lock()

    # --- Public API ---

    @property
    def poller(self) -> Optional[LiveLocationPoller]:
        return self._poller

    def snapshot(self) -> TrackingSession:
        with self._lock:
            return self._session

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Registers a snapshot listener; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def activate(self) -> TrackingSession:
        """
        Runs the startup sequence and starts live polling when a trip is linked.
        Blocks on the network calls; run it off the UI thread.
        """
        with self._lock:
            if self._poller is not None:
                return self._session
            self._activation += 1
            activation = self._activation
            base = replace(self._session, status=SessionStatus.LOADING, status_reason=None, errors={})
            self._commit(base)
        self._publish()

        errors: Dict[str, TrackingError] = {}

        trip_id = self._resolve_trip_id(base.consignment_id, errors)

        pickup_outcome, drop_outcome = self.geocoding.resolve_pair(base.pickup_address, base.drop_address)
        if pickup_outcome.error is not None:
            errors[PICKUP] = pickup_outcome.error
        if drop_outcome.error is not None:
            errors[DROP] = drop_outcome.error

        routes = None
        if pickup_outcome.resolved and drop_outcome.resolved:
            routes = self._request_routes(pickup_outcome.coordinate, drop_outcome.coordinate, errors)

        status, reason = self._status_for(trip_id, pickup_outcome.resolved or drop_outcome.resolved, errors)

        with self._lock:
            if activation != self._activation:
                # deactivated (or re-targeted) while we were on the network
                logger.info("Activation of consignment %s superseded", base.consignment_id)
                return self._session

            session = replace(
                self._session,
                status=status,
                status_reason=reason,
                trip_id=trip_id,
                pickup=pickup_outcome.coordinate,
                drop=drop_outcome.coordinate,
                routes=routes,
                errors=errors,
            )
            session = replace(session, viewport=self._fit(session))
            self._commit(session)
            logger.info("Tracking session for consignment %s is %s", session.consignment_id, status.value)

            poller = None
            if trip_id is not None:
                # registered before it starts so a concurrent deactivate() stops it
                poller = self.poller_factory(
                    self.trip_data,
                    on_tick=self._on_tick,
                    policy=self.policy,
                    history_since=self._history_since,
                )
                self._poller = poller

        if poller is not None:
            try:
                poller.start(trip_id)
            except PollerStateException:
                # deactivate() stopped it between registration and start
                logger.info("Activation of consignment %s superseded", session.consignment_id)

        self._publish()
        return session

    def deactivate(self) -> None:
        """
        Stops the poller, then discards the history. Idempotent.
        """
        with self._lock:
            self._activation += 1
            poller = self._poller
            self._poller = None

        if poller is not None:
            poller.stop()

        with self._lock:
            if self._session.status == SessionStatus.CLOSED:
                return
            self._history.clear()
            session = TrackingSession(
                consignment_id=self._session.consignment_id,
                pickup_address=self._session.pickup_address,
                drop_address=self._session.drop_address,
                status=SessionStatus.CLOSED,
                viewport=Viewport.automatic_viewport(self.policy.padding_factor),
            )
            self._commit(session)
        self._publish()

    def change_consignment(self, consignment_id: str, pickup_address: str, drop_address: str) -> TrackingSession:
        """Tears the current session down and activates for a new identity."""
        self.deactivate()
        with self._lock:
            self._history = PathHistory(self.policy.history_cap)
            self._session = TrackingSession(
                consignment_id=consignment_id,
                pickup_address=pickup_address,
                drop_address=drop_address,
                viewport=Viewport.automatic_viewport(self.policy.padding_factor),
            )
        return self.activate()

    def select_route(self, route_type: RouteType) -> TrackingSession:
        """Switches between the full (primary) and shortest route and re-frames."""
        with self._lock:
            session = replace(self._session, route_type=route_type)
            session = replace(session, viewport=self._fit(session))
            self._commit(session)
        self._publish()
        return session

    # --- Internals ---

    def _resolve_trip_id(self, consignment_id: str, errors: Dict[str, TrackingError]) -> Optional[TripId]:
        try:
            trip_id = self.trip_data.fetch_trip_id_for_consignment(consignment_id)
        except ProviderError as exc:
            logger.warning("Trip lookup for consignment %s failed: %s", consignment_id, exc)
            errors[TRIP] = exc
            return None

        if trip_id is None:
            errors[TRIP] = MissingIdentity(f"No trip linked to consignment {consignment_id}")
        return trip_id

    def _request_routes(self, pickup: Coordinate, drop: Coordinate,
                        errors: Dict[str, TrackingError]) -> Optional[RouteSet]:
        try:
            return self.route_engine.request_routes(pickup, drop, self.policy.request_alternates)
        except NoRouteFound as exc:
            logger.info("Route unavailable: %s", exc)
            errors[ROUTE] = exc
        except ProviderError as exc:
            logger.warning("Route request failed: %s", exc)
            errors[ROUTE] = exc
        return None

    @staticmethod
    def _status_for(trip_id: Optional[TripId], has_endpoint: bool,
                    errors: Dict[str, TrackingError]) -> Tuple[SessionStatus, Optional[str]]:
        if trip_id is not None:
            return SessionStatus.READY, None

        trip_error = errors.get(TRIP)
        reason = f"No live tracking: {trip_error}" if trip_error else "No live tracking"
        if has_endpoint:
            return SessionStatus.DEGRADED, reason
        return SessionStatus.ERROR, reason

    def _fit(self, session: TrackingSession) -> Viewport:
        route = session.selected_route
        return fit(
            [session.pickup, session.drop, session.live_position],
            route_polyline=route.polyline if route else None,
            padding_factor=self.policy.padding_factor,
            degenerate_region_m=self.policy.degenerate_region_m,
        )

    def _history_since(self):
        with self._lock:
            newest = self._history.newest
            return newest.captured_at if newest else None

    def _on_tick(self, result: TickResult) -> None:
        # runs under the poller lock: stop() cannot return while this is running
        with self._lock:
            current = self._session
            if result.trip_id != current.trip_id:
                return

            self._history.merge(result.history)

            latest = current.latest_sample
            if result.latest is not None and (latest is None or result.latest.captured_at >= latest.captured_at):
                latest = result.latest

            warnings = current.deviation_warnings
            if result.deviation_warnings is not None:
                warnings = result.deviation_warnings

            poller = self._poller
            session = replace(
                current,
                latest_sample=latest,
                path_history=self._history.snapshot(),
                deviation_warnings=warnings,
                poll_errors=dict(poller.last_errors) if poller is not None else dict(result.errors),
                last_tick_status=result.status,
            )
            session = replace(session, viewport=self._fit(session))
            self._commit(session)

        logger.debug("Applied %s tick for trip %s (%d samples kept)",
                     result.status.value, result.trip_id, len(session.path_history))
        self._publish()

    def _commit(self, session: TrackingSession) -> None:
        # caller holds self._lock
        self._session = session
        self._dirty = True

    def _publish(self) -> None:
        """
        Delivers the current snapshot until no newer one is pending. Returns
        at once when another thread is delivering; that thread picks up
        whatever was committed in the meantime.
        """
        while True:
            if not self._delivery_lock.acquire(blocking=False):
                return
            try:
                while True:
                    with self._lock:
                        if not self._dirty:
                            break
                        self._dirty = False
                        session = self._session
                        subscribers = list(self._subscribers)
                    for callback in subscribers:
                        callback(session)
            finally:
                self._delivery_lock.release()

            # a commit may have landed between the last check and the release
            with self._lock:
                if not self._dirty:
                    return
