"""Tranzy open data repository adapter.

API base: https://api.tranzy.ai/v1, GTFS shaped endpoints under /opendata.
Requests are authenticated with the X-API-Key header and scoped to one
agency with X-Agency-Id.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import aiohttp

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

if TYPE_CHECKING:
    from aiohttp import ClientSession

logger = logging.getLogger(__name__)

STOPS_PATH = "/opendata/stops"
ROUTES_PATH = "/opendata/routes"
TRIPS_PATH = "/opendata/trips"
STOP_TIMES_PATH = "/opendata/stop_times"
VEHICLES_PATH = "/opendata/vehicles"

# Static schedule data changes rarely; live vehicles are fetched every time
STATIC_DATA_TTL_SECONDS = 24 * 60 * 60


class TranzyTransitRepository(TransitDataRepository):
    """Adapter fetching stations, routes, schedule and live vehicles from Tranzy."""

    def __init__(
        self,
        session: "ClientSession",
        api_key: str,
        agency_id: str,
        base_url: str = "https://api.tranzy.ai/v1",
        timeout_seconds: int = 10,
        static_ttl_seconds: float = STATIC_DATA_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize with an aiohttp session and API credentials."""
        self._session = session
        self._api_key = api_key
        self._agency_id = agency_id
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._static_ttl = static_ttl_seconds
        self._clock = clock
        # path -> (fetched_at, raw records); also the last known good copy
        self._static_cache: dict[str, tuple[float, list[Any]]] = {}
        self._served_stale = False

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "X-API-Key": self._api_key,
            "X-Agency-Id": self._agency_id,
        }

    async def _fetch(self, path: str) -> list[Any]:
        """GET a collection endpoint.

        Raises:
            aiohttp.ClientError: On connection errors and non-2xx responses.
            TimeoutError: If the request exceeds the configured timeout.
        """
        url = f"{self._base_url}{path}"
        async with self._session.get(
            url, headers=self._headers(), timeout=self._timeout
        ) as response:
            if response.status != 200:
                response_text = await response.text()
                logger.warning(
                    f"Tranzy API returned status {response.status} for {path}: "
                    f"{response_text[:200]}"
                )
            response.raise_for_status()
            data = await response.json()

        if not isinstance(data, list):
            logger.warning(f"Unexpected Tranzy response for {path}: {type(data).__name__}")
            return []
        logger.debug(f"Fetched {len(data)} records from {path}")
        return data

    async def _fetch_static(self, path: str) -> list[Any]:
        """Fetch a static collection, reusing a fresh cached copy.

        When the request fails and an older copy exists, the older copy is
        returned instead of raising.
        """
        cached = self._static_cache.get(path)
        if cached is not None and self._clock() - cached[0] <= self._static_ttl:
            return cached[1]

        try:
            records = await self._fetch(path)
        except (aiohttp.ClientError, TimeoutError) as e:
            if cached is None:
                raise
            logger.warning(f"Using cached {path} data after fetch failure: {e}")
            self._served_stale = True
            return cached[1]

        self._static_cache[path] = (self._clock(), records)
        return records

    def clear_cache(self) -> None:
        self._static_cache.clear()

    async def get_stations(self) -> list[Station]:
        return TranzyEntityParser.parse_stations(await self._fetch_static(STOPS_PATH))

    async def get_routes(self) -> list[Route]:
        return TranzyEntityParser.parse_routes(await self._fetch_static(ROUTES_PATH))

    async def get_trips(self) -> list[Trip] | None:
        try:
            records = await self._fetch_static(TRIPS_PATH)
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning(f"Trips unavailable, route association may fall back: {e}")
            return None
        return TranzyEntityParser.parse_trips(records) or None

    async def get_stop_times(self) -> list[StopTime] | None:
        try:
            records = await self._fetch_static(STOP_TIMES_PATH)
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning(f"Stop times unavailable, route association will fall back: {e}")
            return None
        return TranzyEntityParser.parse_stop_times(records) or None

    async def get_vehicles(self) -> list[LiveVehicle]:
        return TranzyEntityParser.parse_vehicles(await self._fetch(VEHICLES_PATH))

    async def get_snapshot(self) -> TransitSnapshot:
        """Fetch all collections concurrently.

        Stations and routes are required and their errors propagate. Missing
        schedule data or live vehicles only add a warning.
        """
        self._served_stale = False
        stations, routes, trips, stop_times, vehicles = await asyncio.gather(
            self.get_stations(),
            self.get_routes(),
            self.get_trips(),
            self.get_stop_times(),
            self.get_vehicles(),
            return_exceptions=True,
        )
        for required in (stations, routes):
            if isinstance(required, BaseException):
                raise required

        warnings: list[str] = []
        if isinstance(vehicles, BaseException):
            logger.warning(f"Live vehicles unavailable: {vehicles}")
            warnings.append(f"Live vehicles unavailable: {vehicles}")
            vehicles = []
        if isinstance(trips, BaseException):
            logger.warning(f"Trips unavailable, route association may fall back: {trips}")
            trips = None
        if isinstance(stop_times, BaseException):
            logger.warning(
                f"Stop times unavailable, route association will fall back: {stop_times}"
            )
            stop_times = None
        if needs_route_fallback(stop_times, trips, vehicles):
            warnings.append(SCHEDULE_FALLBACK_WARNING)

        logger.info(
            f"Fetched {len(stations)} stations, {len(routes)} routes, {len(vehicles)} vehicles "
            f"from agency {self._agency_id}"
        )
        return TransitSnapshot(
            stations=stations,
            routes=routes,
            vehicles=vehicles,
            stop_times=stop_times,
            trips=trips,
            fetched_at=datetime.now(UTC),
            is_stale=self._served_stale,
            warnings=warnings,
        )
