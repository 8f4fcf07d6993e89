"""Domain layer - core models, geometry and ports."""

from nearby_transit.domain.models import (
    Coordinates,
    LiveVehicle,
    Route,
    Station,
    StopTime,
    Trip,
)
from nearby_transit.domain.ports import TransitDataRepository

__all__ = [
    "Coordinates",
    "LiveVehicle",
    "Route",
    "Station",
    "StopTime",
    "TransitDataRepository",
    "Trip",
]
