"""Trip domain model."""

from dataclasses import dataclass
from enum import StrEnum


class TripDirection(StrEnum):
    """Direction of a trip along its route."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


@dataclass(frozen=True)
class Trip:
    """One scheduled run of a route."""

    id: str
    route_id: str
    direction: TripDirection
    service_id: str
    headsign: str | None = None
