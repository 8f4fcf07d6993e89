"""Station to route association index."""

from dataclasses import dataclass, field
from enum import StrEnum

from nearby_transit.domain.models.route import Route


class AssociationMode(StrEnum):
    """How station to route links were established."""

    GTFS = "gtfs"  # From stop times joined with trips (or vehicle trip linkage)
    FALLBACK = "fallback"  # Schedule data missing: every route serves every station


class TripSource(StrEnum):
    """Where the trip to route mapping came from."""

    TRIPS = "trips"
    VEHICLES = "vehicles"
    NONE = "none"


@dataclass(frozen=True)
class RouteAssociationStatistics:
    """Aggregate figures over an association index."""

    total_stations: int
    stations_with_routes: int
    stations_without_routes: int
    total_routes: int
    average_routes_per_station: float
    min_routes_per_station: int
    max_routes_per_station: int
    ignored_stop_times: int = 0

    def as_context(self) -> dict[str, int | float]:
        return {
            "total_stations": self.total_stations,
            "stations_with_routes": self.stations_with_routes,
            "stations_without_routes": self.stations_without_routes,
            "total_routes": self.total_routes,
            "average_routes_per_station": round(self.average_routes_per_station, 2),
            "min_routes_per_station": self.min_routes_per_station,
            "max_routes_per_station": self.max_routes_per_station,
        }


@dataclass(frozen=True)
class RouteAssociationIndex:
    """Routes serving each station, keyed by station id."""

    routes_by_station: dict[str, tuple[Route, ...]]
    mode: AssociationMode
    trip_source: TripSource
    statistics: RouteAssociationStatistics
    trip_ids_by_station: dict[str, frozenset[str]] = field(default_factory=dict)

    def routes_for(self, station_id: str) -> tuple[Route, ...]:
        return self.routes_by_station.get(station_id, ())

    def is_serviceable(self, station_id: str) -> bool:
        return bool(self.routes_by_station.get(station_id))

    @property
    def is_fallback(self) -> bool:
        return self.mode is AssociationMode.FALLBACK
