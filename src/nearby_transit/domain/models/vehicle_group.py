"""Vehicle groups shown per selected station."""

from dataclasses import dataclass, field

from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.nearby_view_error import NearbyViewError
from nearby_transit.domain.models.route import RouteMode
from nearby_transit.domain.models.station_with_routes import StationWithRoutes


@dataclass(frozen=True)
class EnrichedVehicle:
    """A live vehicle joined with the display fields of its route."""

    vehicle: LiveVehicle
    route_id: str
    route_name: str
    route_description: str
    route_mode: RouteMode

    @property
    def id(self) -> str:
        return self.vehicle.id


@dataclass(frozen=True)
class RouteVehicleSummary:
    """Number of live vehicles currently serving a station on one route."""

    route_id: str
    route_name: str
    vehicle_count: int


@dataclass(frozen=True)
class StationVehicleGroup:
    """Vehicles and per-route summary for one selected station.

    vehicle_error is set when vehicle enrichment failed; the station is
    still shown, with an empty vehicle list.
    """

    station: StationWithRoutes
    vehicles: tuple[EnrichedVehicle, ...] = field(default_factory=tuple)
    all_routes: tuple[RouteVehicleSummary, ...] = field(default_factory=tuple)
    vehicle_error: NearbyViewError | None = None

    @property
    def distance(self) -> float:
        return self.station.distance_from_user
