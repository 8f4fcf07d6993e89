"""Bundle of transit entities fetched together."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.route import Route
from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.stop_time import StopTime
from nearby_transit.domain.models.trip import Trip

SCHEDULE_FALLBACK_WARNING = (
    "Schedule data unavailable; all routes are assumed to serve all stations"
)


def needs_route_fallback(
    stop_times: Sequence[StopTime] | None,
    trips: Sequence[Trip] | None,
    vehicles: Sequence[LiveVehicle] | None,
) -> bool:
    """Whether route association will assume every route serves every station.

    Stop times alone are enough when live vehicles carry the trip to route
    linkage that missing trips would otherwise provide.
    """
    if not stop_times:
        return True
    if trips:
        return not any(t.id and t.route_id for t in trips)
    return not any(v.trip_id and v.route_id for v in vehicles or ())


@dataclass(frozen=True)
class TransitSnapshot:
    """Stations, routes and vehicles plus optional schedule data.

    stop_times and trips are None when the source did not provide them.
    """

    stations: list[Station]
    routes: list[Route]
    vehicles: list[LiveVehicle]
    stop_times: list[StopTime] | None = None
    trips: list[Trip] | None = None
    fetched_at: datetime | None = None
    is_stale: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def needs_route_fallback(self) -> bool:
        return needs_route_fallback(self.stop_times, self.trips, self.vehicles)
