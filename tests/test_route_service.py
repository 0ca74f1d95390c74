import random

import pytest

from routing.errors import NoRouteFound, NotFound, ProviderError
from routing.geocoding import GeocodingPipeline
from routing.route_service import RouteRequestEngine, RouteSet, RouteType, shortest_index

from conftest import (
    BAKER_STREET,
    DOWNING_COORD,
    DOWNING_STREET,
    KINGS_CROSS_COORD,
    FakeDirections,
    FakeGeocoder,
    straight_route,
)


def test_primary_is_first_and_shortest_is_min_distance():
    """
    Two candidates [12000m, 9500m]: shortest is the 9500m one, the
    primary/full route stays the provider's first candidate.
    """
    first = straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 12000)
    second = straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 9500)
    engine = RouteRequestEngine(FakeDirections([first, second]))

    routes = engine.request_routes(DOWNING_COORD, KINGS_CROSS_COORD, want_alternates=True)

    assert routes.shortest is second
    assert routes.shortest.distance_m == 9500
    assert routes.primary is first
    assert routes.select(RouteType.FULL) is first
    assert routes.select(RouteType.SHORTEST) is second
    assert routes.alternates == (second,)


def test_shortest_tie_goes_to_lowest_index():
    candidates = [
        straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 8000),
        straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 5000),
        straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 5000),
    ]

    assert shortest_index(candidates) == 1


def test_shortest_is_never_longer_than_any_candidate():
    rng = random.Random(3)
    for _ in range(100):
        candidates = [
            straight_route(DOWNING_COORD, KINGS_CROSS_COORD, rng.choice([1000, 2500, 4000, rng.uniform(500, 9000)]))
            for _ in range(rng.randint(1, 6))
        ]
        routes = RouteSet.from_candidates(candidates)

        for candidate in routes.candidates:
            assert routes.shortest.distance_m <= candidate.distance_m


def test_values_are_passed_through_unchanged():
    route = straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 4321.5)
    routes = RouteRequestEngine(FakeDirections([route])).request_routes(DOWNING_COORD, KINGS_CROSS_COORD)

    assert routes.primary.distance_m == 4321.5
    assert routes.primary.travel_time_s == 432.15


def test_empty_result_raises_no_route_found():
    engine = RouteRequestEngine(FakeDirections([]))

    with pytest.raises(NoRouteFound):
        engine.request_routes(DOWNING_COORD, KINGS_CROSS_COORD)


def test_provider_error_is_not_retried():
    directions = FakeDirections(error=ProviderError("OSRM down"))
    engine = RouteRequestEngine(directions)

    with pytest.raises(ProviderError):
        engine.request_routes(DOWNING_COORD, KINGS_CROSS_COORD)
    assert len(directions.calls) == 1


def test_alternates_flag_is_forwarded():
    directions = FakeDirections([straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 1000)])
    engine = RouteRequestEngine(directions)

    engine.request_routes(DOWNING_COORD, KINGS_CROSS_COORD, want_alternates=False)

    assert directions.calls == [(DOWNING_COORD, KINGS_CROSS_COORD, False)]


def test_addresses_are_geocoded_before_requesting():
    geocoder = FakeGeocoder({"Depot": DOWNING_COORD, "Warehouse": KINGS_CROSS_COORD})
    directions = FakeDirections([straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 3000)])
    engine = RouteRequestEngine(directions, GeocodingPipeline(geocoder))

    routes = engine.request_routes_for_addresses("Depot", "Warehouse")

    assert routes.primary.distance_m == 3000
    assert directions.calls == [(DOWNING_COORD, KINGS_CROSS_COORD, True)]


def test_unresolved_address_never_requests_directions():
    geocoder = FakeGeocoder({DOWNING_STREET: DOWNING_COORD})
    directions = FakeDirections([straight_route(DOWNING_COORD, KINGS_CROSS_COORD, 3000)])
    engine = RouteRequestEngine(directions, GeocodingPipeline(geocoder))

    with pytest.raises(NotFound):
        engine.request_routes_for_addresses(BAKER_STREET, DOWNING_STREET)
    assert directions.calls == []


def test_route_set_needs_at_least_one_candidate():
    with pytest.raises(NoRouteFound):
        RouteSet.from_candidates([])
