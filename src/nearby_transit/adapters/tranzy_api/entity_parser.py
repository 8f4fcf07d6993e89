"""Parser for Tranzy open data (GTFS shaped) responses."""

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, TypeVar

from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.route import Route, RouteMode
from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.stop_time import StopTime
from nearby_transit.domain.models.trip import Trip, TripDirection

logger = logging.getLogger(__name__)

T = TypeVar("T")

# GTFS route_type codes
ROUTE_TYPE_MODES = {
    0: RouteMode.TRAM,
    1: RouteMode.METRO,
    2: RouteMode.RAIL,
    3: RouteMode.BUS,
    4: RouteMode.FERRY,
    11: RouteMode.TROLLEYBUS,
}


def _id(value: Any) -> str:
    """Canonical identifier: ids arrive as int or str and are str from here on."""
    if value is None:
        return ""
    return str(value).strip()


def _optional_id(value: Any) -> str | None:
    return _id(value) or None


class TranzyEntityParser:
    """Turns raw Tranzy records into domain models.

    Malformed records are skipped with a debug log rather than failing the
    whole collection.
    """

    @staticmethod
    def _parse_all(
        records: Iterable[Any], parse: Callable[[dict[str, Any]], T | None], kind: str
    ) -> list[T]:
        results: list[T] = []
        skipped = 0
        for record in records or []:
            if not isinstance(record, dict):
                skipped += 1
                continue
            try:
                parsed = parse(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed {kind} record: {e}")
                parsed = None
            if parsed is None:
                skipped += 1
            else:
                results.append(parsed)
        if skipped:
            logger.debug(f"Skipped {skipped} malformed {kind} records")
        return results

    @staticmethod
    def parse_route_mode(route_type: Any) -> RouteMode:
        try:
            return ROUTE_TYPE_MODES.get(int(route_type), RouteMode.OTHER)
        except (TypeError, ValueError):
            return RouteMode.OTHER

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime | None:
        if isinstance(value, int | float):
            return datetime.fromtimestamp(value, UTC)
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    @staticmethod
    def _station(record: dict[str, Any]) -> Station | None:
        station_id = _id(record.get("stop_id"))
        if not station_id:
            return None
        return Station(
            id=station_id,
            name=str(record.get("stop_name") or station_id),
            coordinates=Coordinates(
                latitude=float(record["stop_lat"]), longitude=float(record["stop_lon"])
            ),
        )

    @staticmethod
    def _route(record: dict[str, Any]) -> Route | None:
        route_id = _id(record.get("route_id"))
        if not route_id:
            return None
        short_name = str(record.get("route_short_name") or route_id)
        color = record.get("route_color")
        return Route(
            id=route_id,
            short_name=short_name,
            long_name=str(record.get("route_long_name") or ""),
            mode=TranzyEntityParser.parse_route_mode(record.get("route_type")),
            agency_id=_id(record.get("agency_id")),
            color=f"#{color.lstrip('#')}" if isinstance(color, str) and color else None,
        )

    @staticmethod
    def _trip(record: dict[str, Any]) -> Trip | None:
        trip_id = _id(record.get("trip_id"))
        route_id = _id(record.get("route_id"))
        if not trip_id or not route_id:
            return None
        direction = (
            TripDirection.INBOUND
            if str(record.get("direction_id", 0)) == "0"
            else TripDirection.OUTBOUND
        )
        return Trip(
            id=trip_id,
            route_id=route_id,
            direction=direction,
            service_id=_id(record.get("service_id")),
            headsign=record.get("trip_headsign") or None,
        )

    @staticmethod
    def _stop_time(record: dict[str, Any]) -> StopTime | None:
        station_id = _id(record.get("stop_id"))
        if not station_id:
            return None
        # An empty trip id is kept; association logic ignores it
        return StopTime(
            trip_id=_id(record.get("trip_id")),
            station_id=station_id,
            sequence=int(record.get("stop_sequence") or 0),
            arrival_time=record.get("arrival_time") or None,
            departure_time=record.get("departure_time") or None,
        )

    @staticmethod
    def _vehicle(record: dict[str, Any]) -> LiveVehicle | None:
        vehicle_id = _id(record.get("id"))
        timestamp = TranzyEntityParser._parse_timestamp(record.get("timestamp"))
        if not vehicle_id or timestamp is None:
            return None
        speed = record.get("speed")
        return LiveVehicle(
            id=vehicle_id,
            route_id=_optional_id(record.get("route_id")),
            trip_id=_optional_id(record.get("trip_id")),
            position=Coordinates(
                latitude=float(record["latitude"]), longitude=float(record["longitude"])
            ),
            timestamp=timestamp,
            speed=float(speed) if speed is not None else None,
            label=record.get("label") or None,
            is_wheelchair_accessible=record.get("wheelchair_accessible") == "WHEELCHAIR_ACCESSIBLE",
            is_bike_accessible=record.get("bike_accessible") == "BIKE_ACCESSIBLE",
        )

    @classmethod
    def parse_stations(cls, records: Iterable[Any]) -> list[Station]:
        return cls._parse_all(records, cls._station, "stop")

    @classmethod
    def parse_routes(cls, records: Iterable[Any]) -> list[Route]:
        return cls._parse_all(records, cls._route, "route")

    @classmethod
    def parse_trips(cls, records: Iterable[Any]) -> list[Trip]:
        return cls._parse_all(records, cls._trip, "trip")

    @classmethod
    def parse_stop_times(cls, records: Iterable[Any]) -> list[StopTime]:
        return cls._parse_all(records, cls._stop_time, "stop_time")

    @classmethod
    def parse_vehicles(cls, records: Iterable[Any]) -> list[LiveVehicle]:
        return cls._parse_all(records, cls._vehicle, "vehicle")
