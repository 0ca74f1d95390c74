import pytest

from tracking.policy import TrackingPolicy, default_tracking_policy


def test_defaults_are_valid():
    policy = default_tracking_policy()

    assert policy.poll_interval_seconds == 10.0
    assert policy.history_cap == 200
    assert policy.padding_factor == 0.35


@pytest.mark.parametrize(
    "overrides",
    [
        {"poll_interval_seconds": 0},
        {"history_limit": -1},
        {"history_cap": 0},
        {"padding_factor": -0.1},
        {"degenerate_region_m": 0},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValueError):
        TrackingPolicy(**overrides).validate()


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("TRACKING_POLL_INTERVAL_S", "2.5")
    monkeypatch.setenv("TRACKING_HISTORY_CAP", "40")
    monkeypatch.setenv("TRACKING_REQUEST_ALTERNATES", "false")

    policy = TrackingPolicy.from_env()

    assert policy.poll_interval_seconds == 2.5
    assert policy.history_cap == 40
    assert policy.request_alternates is False


def test_from_env_validates(monkeypatch):
    monkeypatch.setenv("TRACKING_PADDING_FACTOR", "-1")

    with pytest.raises(ValueError):
        TrackingPolicy.from_env()
