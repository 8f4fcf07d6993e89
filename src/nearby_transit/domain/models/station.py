"""Station domain model."""

from dataclasses import dataclass

from nearby_transit.domain.models.coordinates import Coordinates


@dataclass(frozen=True)
class Station:
    """Represents a fixed physical transit stop."""

    id: str
    name: str
    coordinates: Coordinates
    is_favorite: bool = False
