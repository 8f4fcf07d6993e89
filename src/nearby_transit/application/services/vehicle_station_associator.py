"""Vehicle to station association."""

import logging
from collections import Counter
from collections.abc import Mapping, Sequence

from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.route import Route, RouteMode
from nearby_transit.domain.models.station_with_routes import StationWithRoutes
from nearby_transit.domain.models.stop_time import StopTime
from nearby_transit.domain.models.vehicle_group import (
    EnrichedVehicle,
    RouteVehicleSummary,
    StationVehicleGroup,
)

logger = logging.getLogger(__name__)


def build_stop_time_index(stop_times: Sequence[StopTime] | None) -> dict[str, frozenset[str]]:
    """Map station id to the trip ids whose stop times visit it."""
    if not stop_times:
        return {}
    index: dict[str, set[str]] = {}
    for stop_time in stop_times:
        if stop_time.has_trip:
            index.setdefault(stop_time.station_id, set()).add(stop_time.trip_id)
    return {station_id: frozenset(trips) for station_id, trips in index.items()}


class VehicleStationAssociator:
    """Finds the live vehicles serving a station and summarises them per route."""

    def associate(
        self,
        station: StationWithRoutes,
        vehicles: Sequence[LiveVehicle],
        routes_by_id: Mapping[str, Route],
        trip_index: Mapping[str, frozenset[str]] | None,
        max_vehicles: int,
    ) -> StationVehicleGroup:
        """Build the vehicle group of one station.

        With a stop time index a vehicle serves the station when its trip
        visits the station. Without one (no schedule data) it serves the
        station when its route is among the station's routes.

        Args:
            station: Selected station with its associated routes.
            vehicles: All live vehicles.
            routes_by_id: Route lookup for display fields.
            trip_index: Station id to trip ids, or None/empty without stop times.
            max_vehicles: Cap on the number of vehicles listed.
        """
        tracked = [v for v in vehicles if v.trip_id]
        if trip_index:
            station_trips = trip_index.get(station.id, frozenset())
            serving = [v for v in tracked if v.trip_id in station_trips]
        else:
            station_routes = set(station.route_ids)
            serving = [v for v in tracked if v.route_id in station_routes]

        enriched = sorted(
            (self._enrich(v, routes_by_id) for v in serving),
            key=lambda e: (e.route_name, e.id),
        )
        counts = Counter(v.route_id for v in serving)
        summary = tuple(
            RouteVehicleSummary(
                route_id=route.id,
                route_name=route.short_name,
                vehicle_count=counts.get(route.id, 0),
            )
            for route in station.associated_routes
        )

        logger.debug(
            f"{len(serving)} of {len(tracked)} tracked vehicles serve {station.name}, "
            f"showing up to {max_vehicles}"
        )
        return StationVehicleGroup(
            station=station,
            vehicles=tuple(enriched[: max(max_vehicles, 0)]),
            all_routes=summary,
        )

    @staticmethod
    def _enrich(vehicle: LiveVehicle, routes_by_id: Mapping[str, Route]) -> EnrichedVehicle:
        route_id = vehicle.route_id or ""
        route = routes_by_id.get(route_id)
        if route is None:
            return EnrichedVehicle(
                vehicle=vehicle,
                route_id=route_id,
                route_name=f"Route {route_id or 'unknown'}",
                route_description="",
                route_mode=RouteMode.OTHER,
            )
        return EnrichedVehicle(
            vehicle=vehicle,
            route_id=route.id,
            route_name=route.short_name,
            route_description=route.long_name,
            route_mode=route.mode,
        )
