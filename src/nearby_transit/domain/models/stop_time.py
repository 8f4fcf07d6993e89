"""Stop time domain model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StopTime:
    """Scheduled visit of one trip to one station.

    A stop time with an empty trip_id cannot be linked to a route and is
    ignored by the association logic.
    """

    trip_id: str
    station_id: str
    sequence: int
    arrival_time: str | None = None  # GTFS clock time, may exceed 24:00:00
    departure_time: str | None = None

    @property
    def has_trip(self) -> bool:
        """Whether this stop time carries a usable trip identifier."""
        return bool(self.trip_id)
