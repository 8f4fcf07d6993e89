"""Route association filter.

Decides which routes serve which station, from stop times joined with trips
when schedule data is available, and from the "every route serves every
station" fallback when it is not.
"""

import hashlib
import logging
import time
from collections.abc import Callable, Iterable, Sequence

from nearby_transit.domain.contracts.association_cache import AssociationCacheProtocol
from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.route import Route
from nearby_transit.domain.models.route_association import (
    AssociationMode,
    RouteAssociationIndex,
    RouteAssociationStatistics,
    TripSource,
)
from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.station_with_routes import StationWithRoutes
from nearby_transit.domain.models.stop_time import StopTime
from nearby_transit.domain.models.trip import Trip

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300.0
DEFAULT_CACHE_MAX_ENTRIES = 8


class RouteAssociationCache(AssociationCacheProtocol):
    """In-memory cache of association indexes keyed by data fingerprint.

    Entries expire after ttl_seconds. invalidate() bumps a version counter so
    that entries stored before the call are never returned again.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._version = 0
        self._entries: dict[tuple[int, str], tuple[float, RouteAssociationIndex]] = {}

    @property
    def version(self) -> int:
        return self._version

    def get(self, fingerprint: str) -> RouteAssociationIndex | None:
        key = (self._version, fingerprint)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, index = entry
        if self._clock() - stored_at > self._ttl_seconds:
            del self._entries[key]
            return None
        return index

    def set(self, fingerprint: str, index: RouteAssociationIndex) -> None:
        self._entries[(self._version, fingerprint)] = (self._clock(), index)
        if len(self._entries) > self._max_entries:
            # Dicts keep insertion order, so the first key is the oldest
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def invalidate(self) -> None:
        self._version += 1
        self._entries = {k: v for k, v in self._entries.items() if k[0] == self._version}

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _fingerprint(
    stations: Sequence[Station],
    routes: Sequence[Route],
    stop_times: Sequence[StopTime] | None,
    trips: Sequence[Trip] | None,
    vehicle_links: Iterable[tuple[str, str]],
) -> str:
    """Content hash over the identifiers that drive association.

    Routes are hashed by value since the index hands out the Route objects.
    """
    digest = hashlib.sha1(usedforsecurity=False)

    def feed(tag: str, values: Iterable[str]) -> None:
        digest.update(tag.encode())
        for value in values:
            digest.update(value.encode())
            digest.update(b"\x1f")

    feed("s", (s.id for s in stations))
    feed("r", (repr(r) for r in routes))
    if trips is not None:
        feed("t", (f"{t.id}>{t.route_id}" for t in trips))
    if stop_times is not None:
        feed("st", (f"{st.trip_id}@{st.station_id}" for st in stop_times))
    feed("v", (f"{trip_id}>{route_id}" for trip_id, route_id in vehicle_links))
    return digest.hexdigest()


def _vehicle_trip_links(vehicles: Sequence[LiveVehicle] | None) -> list[tuple[str, str]]:
    if not vehicles:
        return []
    return [(v.trip_id, v.route_id) for v in vehicles if v.trip_id and v.route_id]


class RouteAssociationFilter:
    """Builds station to route association indexes."""

    def __init__(self, cache: AssociationCacheProtocol | None = None) -> None:
        """Initialize with an optional cache; a private one is created otherwise."""
        self._cache = cache if cache is not None else RouteAssociationCache()

    @property
    def cache(self) -> AssociationCacheProtocol:
        return self._cache

    def invalidate_cache(self) -> None:
        self._cache.invalidate()

    def build_index(
        self,
        stations: Sequence[Station],
        routes: Sequence[Route],
        stop_times: Sequence[StopTime] | None = None,
        trips: Sequence[Trip] | None = None,
        vehicles: Sequence[LiveVehicle] | None = None,
    ) -> RouteAssociationIndex:
        """Associate routes with stations.

        Trip to route linkage comes from trips; when no trips are given but
        stop times are, the linkage observed on live vehicles is used instead.
        Without stop times or without any linkage the index is built in
        fallback mode, where every route serves every station.
        """
        vehicle_links = _vehicle_trip_links(vehicles) if not trips and stop_times else []
        fingerprint = _fingerprint(stations, routes, stop_times, trips, vehicle_links)
        cached = self._cache.get(fingerprint)
        if cached is not None:
            logger.debug(f"Route association cache hit ({fingerprint[:8]})")
            return cached

        trip_routes, trip_source = self._trip_route_map(trips, vehicle_links)
        if stop_times and trip_routes:
            index = self._build_gtfs_index(stations, routes, stop_times, trip_routes, trip_source)
        else:
            index = self._build_fallback_index(stations, routes, trip_source)

        stats = index.statistics
        logger.debug(
            f"Route association built in {index.mode} mode (trip source: {index.trip_source}): "
            f"{stats.stations_with_routes}/{stats.total_stations} stations serviceable, "
            f"{stats.ignored_stop_times} stop times ignored"
        )
        self._cache.set(fingerprint, index)
        return index

    @staticmethod
    def _trip_route_map(
        trips: Sequence[Trip] | None, vehicle_links: list[tuple[str, str]]
    ) -> tuple[dict[str, str], TripSource]:
        if trips:
            return {t.id: t.route_id for t in trips if t.id and t.route_id}, TripSource.TRIPS
        if vehicle_links:
            return dict(vehicle_links), TripSource.VEHICLES
        return {}, TripSource.NONE

    def _build_gtfs_index(
        self,
        stations: Sequence[Station],
        routes: Sequence[Route],
        stop_times: Sequence[StopTime],
        trip_routes: dict[str, str],
        trip_source: TripSource,
    ) -> RouteAssociationIndex:
        routes_by_id = {r.id: r for r in routes}
        station_ids = {s.id for s in stations}
        # dict keys keep first-appearance order and deduplicate
        linked: dict[str, dict[str, None]] = {}
        trip_ids_by_station: dict[str, set[str]] = {}
        ignored = 0

        for stop_time in stop_times:
            if not stop_time.has_trip or stop_time.station_id not in station_ids:
                ignored += 1
                continue
            route_id = trip_routes.get(stop_time.trip_id)
            if route_id is None or route_id not in routes_by_id:
                ignored += 1
                continue
            linked.setdefault(stop_time.station_id, {})[route_id] = None
            trip_ids_by_station.setdefault(stop_time.station_id, set()).add(stop_time.trip_id)

        routes_by_station = {
            s.id: tuple(routes_by_id[rid] for rid in linked.get(s.id, {})) for s in stations
        }
        return RouteAssociationIndex(
            routes_by_station=routes_by_station,
            mode=AssociationMode.GTFS,
            trip_source=trip_source,
            statistics=self._statistics(routes_by_station, len(routes), ignored),
            trip_ids_by_station={k: frozenset(v) for k, v in trip_ids_by_station.items()},
        )

    def _build_fallback_index(
        self,
        stations: Sequence[Station],
        routes: Sequence[Route],
        trip_source: TripSource,
    ) -> RouteAssociationIndex:
        logger.warning(
            f"Schedule data unavailable, associating all {len(routes)} routes "
            f"with all {len(stations)} stations"
        )
        all_routes = tuple(routes)
        routes_by_station = {s.id: all_routes for s in stations}
        return RouteAssociationIndex(
            routes_by_station=routes_by_station,
            mode=AssociationMode.FALLBACK,
            trip_source=trip_source,
            statistics=self._statistics(routes_by_station, len(routes), 0),
        )

    @staticmethod
    def _statistics(
        routes_by_station: dict[str, tuple[Route, ...]], total_routes: int, ignored: int
    ) -> RouteAssociationStatistics:
        counts = [len(r) for r in routes_by_station.values() if r]
        total = len(routes_by_station)
        return RouteAssociationStatistics(
            total_stations=total,
            stations_with_routes=len(counts),
            stations_without_routes=total - len(counts),
            total_routes=total_routes,
            average_routes_per_station=sum(counts) / len(counts) if counts else 0.0,
            min_routes_per_station=min(counts, default=0),
            max_routes_per_station=max(counts, default=0),
            ignored_stop_times=ignored,
        )

    @staticmethod
    def serviceable_stations(
        stations: Sequence[Station],
        index: RouteAssociationIndex,
        require_active_routes: bool = True,
    ) -> tuple[list[StationWithRoutes], list[Station]]:
        """Split stations into serviceable candidates and unserviceable ones.

        With require_active_routes=False every station is a candidate, those
        without routes carrying an empty route tuple.

        Returns:
            Tuple of (candidates, unserviceable stations).
        """
        candidates: list[StationWithRoutes] = []
        unserviceable: list[Station] = []
        for station in stations:
            routes = index.routes_for(station.id)
            if routes or not require_active_routes:
                candidates.append(StationWithRoutes(station=station, associated_routes=routes))
            else:
                unserviceable.append(station)
        return candidates, unserviceable
