"""Station selection result domain model."""

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum

from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.station_with_routes import StationWithRoutes


class RejectionReason(StrEnum):
    """Why a station was excluded from selection."""

    NO_ROUTES = "no_routes"
    OUT_OF_RADIUS = "out_of_radius"
    INVALID_COORDINATES = "invalid_coordinates"


@dataclass(frozen=True)
class RejectedStation:
    """A station excluded from selection, with the reason."""

    station: Station
    reason: RejectionReason


@dataclass(frozen=True)
class SelectionResult:
    """Outcome of one station selection pass.

    second_station, when present, differs from closest_station and lies
    within the proximity threshold of it.
    """

    closest_station: StationWithRoutes | None = None
    second_station: StationWithRoutes | None = None
    rejected_stations: tuple[RejectedStation, ...] = field(default_factory=tuple)

    @property
    def has_selection(self) -> bool:
        return self.closest_station is not None

    @property
    def selected_stations(self) -> tuple[StationWithRoutes, ...]:
        """Selected stations in display order (closest first)."""
        return tuple(s for s in (self.closest_station, self.second_station) if s is not None)

    @property
    def station_ids(self) -> tuple[str | None, str | None]:
        """Identity of the selection, used to detect selection changes."""
        return (
            self.closest_station.id if self.closest_station else None,
            self.second_station.id if self.second_station else None,
        )

    def rejection_breakdown(self) -> dict[str, int]:
        """Count rejected stations per reason."""
        return dict(Counter(str(r.reason) for r in self.rejected_stations))
