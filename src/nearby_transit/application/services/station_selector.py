"""Station selector choosing the closest station and an optional neighbour."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from nearby_transit.domain.geometry import DistanceMemo, is_valid_coordinates, validate_coordinates
from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.selection_result import (
    RejectedStation,
    RejectionReason,
    SelectionResult,
)
from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.station_with_routes import StationWithRoutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionOutcome:
    """Selection result plus how many stations were inside the search radius."""

    result: SelectionResult
    stations_in_radius: int

    @property
    def found_station(self) -> bool:
        return self.result.closest_station is not None


class StationSelector:
    """Selects up to two stations near the user."""

    def __init__(self, memo: DistanceMemo | None = None) -> None:
        """Initialize with an optional distance memo shared across passes."""
        self._memo = memo if memo is not None else DistanceMemo()

    def clear_memo(self) -> None:
        self._memo.clear()

    @staticmethod
    def reject_unserviceable(unserviceable: Sequence[Station]) -> list[RejectedStation]:
        """Reject stations without routes, or with unusable coordinates."""
        return [
            RejectedStation(
                station=station,
                reason=(
                    RejectionReason.NO_ROUTES
                    if is_valid_coordinates(station.coordinates)
                    else RejectionReason.INVALID_COORDINATES
                ),
            )
            for station in unserviceable
        ]

    def select(
        self,
        user_location: Coordinates,
        candidates: Sequence[StationWithRoutes],
        unserviceable: Sequence[Station] = (),
        *,
        max_search_radius: float,
        proximity_threshold: float,
        enable_second_station: bool = True,
    ) -> SelectionOutcome:
        """Pick the closest in-radius station and, optionally, a second one.

        The second station is the closest remaining station lying within
        proximity_threshold meters of the first. In-radius stations that are
        not picked are not reported as rejected.

        Raises:
            InvalidCoordinatesError: If user_location is invalid.
        """
        validate_coordinates(user_location)
        rejected = self.reject_unserviceable(unserviceable)
        in_radius: list[StationWithRoutes] = []

        for candidate in candidates:
            if not is_valid_coordinates(candidate.coordinates):
                rejected.append(
                    RejectedStation(
                        station=candidate.station, reason=RejectionReason.INVALID_COORDINATES
                    )
                )
                continue
            meters = self._memo.distance(user_location, candidate.coordinates)
            if meters > max_search_radius:
                rejected.append(
                    RejectedStation(station=candidate.station, reason=RejectionReason.OUT_OF_RADIUS)
                )
                continue
            in_radius.append(replace(candidate, distance_from_user=meters))

        in_radius.sort(key=lambda s: (s.distance_from_user, s.id))

        if not in_radius:
            logger.debug(
                f"No stations within {max_search_radius:.0f} m "
                f"({len(rejected)} rejected of {len(candidates) + len(unserviceable)})"
            )
            return SelectionOutcome(
                result=SelectionResult(rejected_stations=tuple(rejected)), stations_in_radius=0
            )

        closest = in_radius[0]
        second = None
        if enable_second_station:
            second = self._find_second_station(closest, in_radius[1:], proximity_threshold)

        logger.debug(
            f"Selected {closest.name} ({closest.distance_from_user:.0f} m)"
            + (f" and {second.name} ({second.distance_from_user:.0f} m)" if second else "")
        )
        return SelectionOutcome(
            result=SelectionResult(
                closest_station=closest,
                second_station=second,
                rejected_stations=tuple(rejected),
            ),
            stations_in_radius=len(in_radius),
        )

    def _find_second_station(
        self,
        closest: StationWithRoutes,
        remaining: Sequence[StationWithRoutes],
        proximity_threshold: float,
    ) -> StationWithRoutes | None:
        for candidate in remaining:
            if candidate.id == closest.id:
                continue
            gap = self._memo.distance(closest.coordinates, candidate.coordinates)
            if gap <= proximity_threshold:
                return candidate
        return None
