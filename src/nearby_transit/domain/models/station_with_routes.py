"""Station annotated with its resolved routes and distance from the user."""

from dataclasses import dataclass

from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.route import Route
from nearby_transit.domain.models.station import Station


@dataclass(frozen=True)
class StationWithRoutes:
    """A station together with the routes serving it.

    Derived per request; distance_from_user is in meters and is 0.0 until
    the selector has measured it.
    """

    station: Station
    associated_routes: tuple[Route, ...]
    distance_from_user: float = 0.0

    @property
    def id(self) -> str:
        return self.station.id

    @property
    def name(self) -> str:
        return self.station.name

    @property
    def coordinates(self) -> Coordinates:
        return self.station.coordinates

    @property
    def route_ids(self) -> tuple[str, ...]:
        return tuple(route.id for route in self.associated_routes)

    @property
    def has_routes(self) -> bool:
        return bool(self.associated_routes)
