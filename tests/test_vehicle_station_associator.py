"""Tests for vehicle to station association."""

from datetime import UTC, datetime

import pytest

from nearby_transit.application.services import VehicleStationAssociator, build_stop_time_index
from nearby_transit.domain.models import (
    Coordinates,
    LiveVehicle,
    Route,
    RouteMode,
    Station,
    StationWithRoutes,
    StopTime,
)


def _vehicle(vehicle_id: str, route_id: str | None, trip_id: str | None) -> LiveVehicle:
    return LiveVehicle(
        id=vehicle_id,
        route_id=route_id,
        trip_id=trip_id,
        position=Coordinates(46.77, 23.62),
        timestamp=datetime(2024, 5, 1, 8, 0, tzinfo=UTC),
    )


@pytest.fixture
def associator() -> VehicleStationAssociator:
    return VehicleStationAssociator()


@pytest.fixture
def routes_by_id(routes: list[Route]) -> dict[str, Route]:
    return {r.id: r for r in routes}


def test_stop_time_index_skips_stop_times_without_trip(stop_times: list[StopTime]) -> None:
    """Given stop times with and without trips, then only linked trips are indexed."""
    index = build_stop_time_index([*stop_times, StopTime(trip_id="", station_id="101", sequence=9)])

    assert index == {
        "101": frozenset({"T1"}),
        "102": frozenset({"T1"}),
        "201": frozenset({"T2", "T3"}),
    }
    assert build_stop_time_index(None) == {}
    assert build_stop_time_index([]) == {}


def test_trip_based_matching_uses_stop_times(
    associator: VehicleStationAssociator,
    far_station: Station,
    route_24: Route,
    route_35: Route,
    routes_by_id: dict[str, Route],
    stop_times: list[StopTime],
) -> None:
    """Given a stop time index, then only vehicles on trips visiting the station match."""
    station = StationWithRoutes(station=far_station, associated_routes=(route_24, route_35))
    vehicles = [
        _vehicle("A", "24", "T1"),  # route serves the station but trip T1 does not stop here
        _vehicle("B", "24", "T2"),
        _vehicle("C", "35", "T3"),
    ]

    group = associator.associate(
        station, vehicles, routes_by_id, build_stop_time_index(stop_times), max_vehicles=10
    )

    assert [v.id for v in group.vehicles] == ["B", "C"]
    assert [(s.route_id, s.vehicle_count) for s in group.all_routes] == [("24", 1), ("35", 1)]


def test_route_based_matching_without_stop_times(
    associator: VehicleStationAssociator,
    near_station: Station,
    route_24: Route,
    routes_by_id: dict[str, Route],
) -> None:
    """Given no stop time index, then vehicles match through the station's routes."""
    station = StationWithRoutes(station=near_station, associated_routes=(route_24,))
    vehicles = [_vehicle("A", "24", "T1"), _vehicle("B", "35", "T3"), _vehicle("C", "24", "T9")]

    group = associator.associate(station, vehicles, routes_by_id, None, max_vehicles=10)

    assert [v.id for v in group.vehicles] == ["A", "C"]
    assert group.all_routes[0].vehicle_count == 2


def test_vehicles_without_trip_are_not_tracked(
    associator: VehicleStationAssociator,
    near_station: Station,
    route_24: Route,
    routes_by_id: dict[str, Route],
) -> None:
    """Given a vehicle without a trip, then it is never associated."""
    station = StationWithRoutes(station=near_station, associated_routes=(route_24,))

    group = associator.associate(
        station, [_vehicle("A", "24", None)], routes_by_id, None, max_vehicles=10
    )

    assert group.vehicles == ()
    assert group.all_routes[0].vehicle_count == 0


def test_vehicles_are_enriched_and_sorted(
    associator: VehicleStationAssociator,
    near_station: Station,
    route_24: Route,
    route_35: Route,
    routes_by_id: dict[str, Route],
) -> None:
    """Given mixed routes, then vehicles carry route display fields and sort by route name."""
    station = StationWithRoutes(station=near_station, associated_routes=(route_24, route_35))
    vehicles = [_vehicle("Z", "35", "T3"), _vehicle("Y", "24", "T1"), _vehicle("X", "24", "T2")]

    group = associator.associate(station, vehicles, routes_by_id, None, max_vehicles=10)

    assert [(v.route_name, v.id) for v in group.vehicles] == [("24", "X"), ("24", "Y"), ("35", "Z")]
    trolleybus = group.vehicles[-1]
    assert trolleybus.route_mode is RouteMode.TROLLEYBUS
    assert trolleybus.route_description == "Zorilor - Manastur"


def test_unknown_route_gets_placeholder_display(
    associator: VehicleStationAssociator,
    near_station: Station,
    route_24: Route,
) -> None:
    """Given a vehicle whose route is not known, then it is shown with a placeholder name."""
    station = StationWithRoutes(station=near_station, associated_routes=(route_24,))

    group = associator.associate(
        station,
        [_vehicle("A", "24", "T1")],
        {},
        {"101": frozenset({"T1"})},
        max_vehicles=10,
    )

    (vehicle,) = group.vehicles
    assert vehicle.route_name == "Route 24"
    assert vehicle.route_mode is RouteMode.OTHER


def test_vehicle_list_is_capped_but_summary_counts_all(
    associator: VehicleStationAssociator,
    near_station: Station,
    route_24: Route,
    routes_by_id: dict[str, Route],
) -> None:
    """Given more vehicles than the cap, then the list is capped and counts are complete."""
    station = StationWithRoutes(station=near_station, associated_routes=(route_24,))
    vehicles = [_vehicle(f"V{i}", "24", f"T{i}") for i in range(5)]

    group = associator.associate(station, vehicles, routes_by_id, None, max_vehicles=2)

    assert len(group.vehicles) == 2
    assert group.all_routes[0].vehicle_count == 5


def test_group_distance_is_station_distance(
    associator: VehicleStationAssociator,
    near_station: Station,
    route_24: Route,
    routes_by_id: dict[str, Route],
) -> None:
    """Given a measured station, then the group reports its distance."""
    station = StationWithRoutes(
        station=near_station, associated_routes=(route_24,), distance_from_user=11.1
    )

    group = associator.associate(station, [], routes_by_id, None, max_vehicles=5)

    assert group.distance == 11.1
    assert group.vehicle_error is None
