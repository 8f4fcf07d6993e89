"""Transit data repository port."""

from typing import Protocol

from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.route import Route
from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.stop_time import StopTime
from nearby_transit.domain.models.transit_snapshot import TransitSnapshot
from nearby_transit.domain.models.trip import Trip


class TransitDataRepository(Protocol):
    """Port for retrieving static and live transit data."""

    async def get_stations(self) -> list[Station]:
        """Get all stations of the agency."""
        ...

    async def get_routes(self) -> list[Route]:
        """Get all routes of the agency."""
        ...

    async def get_trips(self) -> list[Trip] | None:
        """Get trips, or None when the source has no trip data."""
        ...

    async def get_stop_times(self) -> list[StopTime] | None:
        """Get stop times, or None when the source has no schedule data."""
        ...

    async def get_vehicles(self) -> list[LiveVehicle]:
        """Get current live vehicle positions."""
        ...

    async def get_snapshot(self) -> TransitSnapshot:
        """Fetch everything needed for one nearby view pass."""
        ...
