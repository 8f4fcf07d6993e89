"""Transit data repository backed by a JSON snapshot file.

The file holds the raw Tranzy collections under the keys "stops", "routes",
"trips", "stop_times" and "vehicles". "trips" and "stop_times" may be left
out, which puts route association into fallback mode.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from nearby_transit.adapters.tranzy_api.entity_parser import TranzyEntityParser
from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.route import Route
from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.stop_time import StopTime
from nearby_transit.domain.models.transit_snapshot import (
    SCHEDULE_FALLBACK_WARNING,
    TransitSnapshot,
    needs_route_fallback,
)
from nearby_transit.domain.models.trip import Trip
from nearby_transit.domain.ports.transit_data_repository import TransitDataRepository

logger = logging.getLogger(__name__)


class JsonSnapshotRepository(TransitDataRepository):
    """Serves transit data from a JSON file, for offline use and replays."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        """Read and cache the file on first use.

        Raises:
            FileNotFoundError: If the snapshot file does not exist.
            ValueError: If the file is not a JSON object.
        """
        if self._data is None:
            if not self._path.exists():
                raise FileNotFoundError(f"Snapshot file not found: {self._path}")
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"Snapshot {self._path} must contain a JSON object")
            self._data = data
            logger.info(
                f"Loaded snapshot {self._path}: "
                + ", ".join(f"{k}={len(v)}" for k, v in data.items() if isinstance(v, list))
            )
        return self._data

    def reload(self) -> None:
        self._data = None

    def _fetched_at(self) -> datetime | None:
        value = self._load().get("fetched_at")
        if not value:
            return None
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Ignoring invalid fetched_at in snapshot: {value}")
            return None

    async def get_stations(self) -> list[Station]:
        return TranzyEntityParser.parse_stations(self._load().get("stops", []))

    async def get_routes(self) -> list[Route]:
        return TranzyEntityParser.parse_routes(self._load().get("routes", []))

    async def get_trips(self) -> list[Trip] | None:
        records = self._load().get("trips")
        if records is None:
            return None
        return TranzyEntityParser.parse_trips(records) or None

    async def get_stop_times(self) -> list[StopTime] | None:
        records = self._load().get("stop_times")
        if records is None:
            return None
        return TranzyEntityParser.parse_stop_times(records) or None

    async def get_vehicles(self) -> list[LiveVehicle]:
        return TranzyEntityParser.parse_vehicles(self._load().get("vehicles", []))

    async def get_snapshot(self) -> TransitSnapshot:
        trips = await self.get_trips()
        stop_times = await self.get_stop_times()
        vehicles = await self.get_vehicles()
        warnings = []
        if needs_route_fallback(stop_times, trips, vehicles):
            warnings.append(SCHEDULE_FALLBACK_WARNING)
        return TransitSnapshot(
            stations=await self.get_stations(),
            routes=await self.get_routes(),
            vehicles=vehicles,
            stop_times=stop_times,
            trips=trips,
            fetched_at=self._fetched_at() or datetime.now(UTC),
            is_stale=True,
            warnings=warnings,
        )
