"""Shared fixtures: a small Cluj-Napoca network around route 24."""

from datetime import UTC, datetime, timedelta

import pytest

from nearby_transit.domain.models import (
    Coordinates,
    LiveVehicle,
    Route,
    RouteMode,
    Station,
    StopTime,
    Trip,
    TripDirection,
)

USER_LOCATION = Coordinates(latitude=46.7712, longitude=23.6236)
# About 15 m east of USER_LOCATION
USER_LOCATION_15M_EAST = Coordinates(latitude=46.7712, longitude=23.623797)
# About 1 km north of USER_LOCATION
USER_LOCATION_1KM_NORTH = Coordinates(latitude=46.7802, longitude=23.6236)


class FakeClock:
    """Controllable clock for time-dependent stability logic."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 8, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def near_station() -> Station:
    """About 11 m north of the user."""
    return Station(id="101", name="Piata Unirii", coordinates=Coordinates(46.7713, 23.6236))


@pytest.fixture
def second_station() -> Station:
    """About 14.5 m north of near_station."""
    return Station(id="102", name="Piata Unirii Nord", coordinates=Coordinates(46.77143, 23.6236))


@pytest.fixture
def far_station() -> Station:
    """About 1 km north of the user, next to USER_LOCATION_1KM_NORTH."""
    return Station(id="201", name="Gara", coordinates=Coordinates(46.7803, 23.6236))


@pytest.fixture
def stations(near_station: Station, second_station: Station, far_station: Station) -> list[Station]:
    return [near_station, second_station, far_station]


@pytest.fixture
def route_24() -> Route:
    return Route(
        id="24",
        short_name="24",
        long_name="Gheorgheni - Gara",
        mode=RouteMode.BUS,
        agency_id="2",
    )


@pytest.fixture
def route_35() -> Route:
    return Route(
        id="35",
        short_name="35",
        long_name="Zorilor - Manastur",
        mode=RouteMode.TROLLEYBUS,
        agency_id="2",
    )


@pytest.fixture
def routes(route_24: Route, route_35: Route) -> list[Route]:
    return [route_24, route_35]


@pytest.fixture
def trips() -> list[Trip]:
    return [
        Trip(id="T1", route_id="24", direction=TripDirection.INBOUND, service_id="WK"),
        Trip(id="T2", route_id="24", direction=TripDirection.OUTBOUND, service_id="WK"),
        Trip(id="T3", route_id="35", direction=TripDirection.INBOUND, service_id="WK"),
    ]


@pytest.fixture
def stop_times() -> list[StopTime]:
    return [
        StopTime(trip_id="T1", station_id="101", sequence=1),
        StopTime(trip_id="T1", station_id="102", sequence=2),
        StopTime(trip_id="T2", station_id="201", sequence=1),
        StopTime(trip_id="T3", station_id="201", sequence=1),
    ]


@pytest.fixture
def vehicles() -> list[LiveVehicle]:
    timestamp = datetime(2024, 5, 1, 7, 59, tzinfo=UTC)
    return [
        LiveVehicle(
            id="V1",
            route_id="24",
            trip_id="T1",
            position=Coordinates(46.7700, 23.6200),
            timestamp=timestamp,
            label="CJ-01-CTP",
        ),
        LiveVehicle(
            id="V2",
            route_id="35",
            trip_id="T3",
            position=Coordinates(46.7790, 23.6230),
            timestamp=timestamp,
        ),
    ]


@pytest.fixture
def user_location() -> Coordinates:
    return USER_LOCATION


@pytest.fixture
def user_location_15m_east() -> Coordinates:
    return USER_LOCATION_15M_EAST


@pytest.fixture
def user_location_1km_north() -> Coordinates:
    return USER_LOCATION_1KM_NORTH
