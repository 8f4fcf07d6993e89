"""Route domain model."""

from dataclasses import dataclass
from enum import StrEnum


class RouteMode(StrEnum):
    """Vehicle mode operated on a route."""

    BUS = "bus"
    TROLLEYBUS = "trolleybus"
    TRAM = "tram"
    METRO = "metro"
    RAIL = "rail"
    FERRY = "ferry"
    OTHER = "other"


@dataclass(frozen=True)
class Route:
    """A named transit line (e.g. "24")."""

    id: str
    short_name: str  # Display code shown on vehicles (e.g. "24", "M3")
    long_name: str  # Long description (e.g. "Piata Garii - Cartier Zorilor")
    mode: RouteMode
    agency_id: str
    color: str | None = None
