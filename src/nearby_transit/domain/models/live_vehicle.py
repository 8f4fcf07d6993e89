"""Live vehicle domain model."""

from dataclasses import dataclass
from datetime import datetime

from nearby_transit.domain.models.coordinates import Coordinates


@dataclass(frozen=True)
class LiveVehicle:
    """A real-time reported vehicle position.

    Rebuilt from every poll of the live feed; never persisted.
    """

    id: str
    route_id: str | None
    trip_id: str | None
    position: Coordinates
    timestamp: datetime
    speed: float | None = None  # km/h as reported by the feed
    label: str | None = None
    is_wheelchair_accessible: bool = False
    is_bike_accessible: bool = False
