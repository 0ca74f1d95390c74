import threading

import pytest

from routing.errors import ProviderError
from tracking.policy import TrackingPolicy
from tracking.poller import FetchKind, LiveLocationPoller, TickStatus
from tracking.state_machines.poller_state import PollerState, PollerStateException

from conftest import FakeTripData, sample_at, wait_for


class Recorder:
    """on_tick sink that records every applied TickResult."""

    def __init__(self):
        self.results = []
        self._lock = threading.Lock()

    def __call__(self, result):
        with self._lock:
            self.results.append(result)

    def __len__(self):
        with self._lock:
            return len(self.results)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def data():
    return FakeTripData(latest=sample_at(5), history=[sample_at(1), sample_at(5)])


@pytest.fixture
def poller(data, recorder, slow_policy):
    poller = LiveLocationPoller(data, on_tick=recorder, policy=slow_policy)
    yield poller
    poller.stop()


def test_start_runs_first_tick_immediately(poller, data, recorder):
    handle = poller.start("trip-1")

    assert handle.trip_id == "trip-1"
    assert poller.state == PollerState.ACTIVE
    assert wait_for(lambda: len(recorder) >= 1)

    result = recorder.results[0]
    assert result.status == TickStatus.OK
    assert result.latest == sample_at(5)
    assert [s.captured_at for s in result.history] == [sample_at(1).captured_at, sample_at(5).captured_at]
    assert result.deviation_warnings == ()


def test_missing_identity_tick_is_reported_not_fetched(poller, data, recorder):
    poller.start(None)

    assert wait_for(lambda: len(recorder) >= 1)
    assert recorder.results[0].status == TickStatus.MISSING_IDENTITY
    assert data.calls == []


def test_one_failing_fetch_does_not_abort_the_others(poller, data, recorder, warning):
    data.warnings = [warning]
    data.errors["history"] = ProviderError("history table locked")
    handle = poller.start("trip-1")
    assert wait_for(lambda: len(recorder) >= 1)

    result = poller.tick(handle)

    assert result.status == TickStatus.PARTIAL
    assert set(result.errors) == {FetchKind.HISTORY}
    assert result.latest == sample_at(5)
    assert result.deviation_warnings == (warning,)
    assert result.history == ()
    assert FetchKind.HISTORY not in result.succeeded


def test_all_fetches_failing_is_failed_status(poller, data):
    for kind in ("latest", "history", "deviations"):
        data.errors[kind] = ProviderError(f"{kind} down")
    handle = poller.start("trip-1")

    result = poller.tick(handle)

    assert result.status == TickStatus.FAILED
    assert set(result.errors) == set(FetchKind)


def test_last_error_is_replaced_and_cleared(poller, data, recorder):
    handle = poller.start("trip-1")
    assert wait_for(lambda: len(recorder) >= 1)

    data.errors["latest"] = ProviderError("first")
    poller.tick(handle)
    data.errors["latest"] = ProviderError("second")
    poller.tick(handle)

    assert list(poller.last_errors) == [FetchKind.LATEST]
    assert str(poller.last_errors[FetchKind.LATEST]) == "second"

    del data.errors["latest"]
    poller.tick(handle)

    assert poller.last_errors == {}


def test_history_request_uses_since_and_limit(data, recorder, slow_policy):
    since = sample_at(5).captured_at
    poller = LiveLocationPoller(data, on_tick=recorder, policy=slow_policy, history_since=lambda: since)
    poller.start("trip-1")
    assert wait_for(lambda: len(recorder) >= 1)
    poller.stop()

    history_calls = [call for call in data.calls if call[0] == "history"]
    assert history_calls[0] == ("history", "trip-1", slow_policy.history_limit, since)
    assert recorder.results[0].history == ()


def test_ticks_repeat_until_stopped(data, recorder):
    poller = LiveLocationPoller(data, on_tick=recorder, policy=TrackingPolicy(poll_interval_seconds=0.02))
    poller.start("trip-1")

    assert wait_for(lambda: len(recorder) >= 3)
    poller.stop()
    applied = len(recorder)

    # give any straggling ticks the chance to (not) land
    threading.Event().wait(0.2)
    assert len(recorder) == applied


def test_stop_is_idempotent_and_final(poller):
    handle = poller.start("trip-1")

    poller.stop(handle)
    poller.stop(handle)
    poller.stop()

    assert poller.state == PollerState.STOPPED
    assert poller.handle is None
    with pytest.raises(PollerStateException):
        poller.start("trip-1")


def test_stop_before_start_is_allowed(data, recorder, slow_policy):
    poller = LiveLocationPoller(data, on_tick=recorder, policy=slow_policy)

    poller.stop()

    assert poller.state == PollerState.STOPPED


def test_stale_handle_does_not_stop_poller(data, recorder, slow_policy):
    from tracking.poller import PollHandle

    poller = LiveLocationPoller(data, on_tick=recorder, policy=slow_policy)
    poller.start("trip-1")

    poller.stop(PollHandle(trip_id="trip-1", generation=99))

    assert poller.state == PollerState.ACTIVE
    poller.stop()


def test_tick_in_flight_at_stop_is_discarded(poller, data, recorder):
    """
    Interval 10s: a fetch issued just before stop() (t=9.999s) that resolves
    after it (t=10.5s) must not be applied.
    """
    data.gate = threading.Event()
    handle = poller.start("trip-1")
    outcome = {}

    def late_tick():
        outcome["result"] = poller.tick(handle)

    worker = threading.Thread(target=late_tick)
    worker.start()
    assert data.fetch_started.wait(5.0)

    poller.stop()
    data.gate.set()
    worker.join(5.0)

    assert outcome["result"] is None
    assert len(recorder) == 0
    assert poller.last_errors == {}
