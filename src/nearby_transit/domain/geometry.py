"""Great-circle geometry on coordinates."""

import math
from collections import OrderedDict

from nearby_transit.domain.models.coordinates import Coordinates

EARTH_RADIUS_METERS = 6_371_000.0
MEMO_COORDINATE_PRECISION = 6  # decimal places, roughly 0.1 m
DEFAULT_MEMO_SIZE = 4096


class InvalidCoordinatesError(ValueError):
    """Raised when a coordinate pair is not finite or out of range."""

    def __init__(self, coordinates: Coordinates) -> None:
        super().__init__(
            f"Invalid coordinates: latitude={coordinates.latitude}, "
            f"longitude={coordinates.longitude}"
        )
        self.coordinates = coordinates


def is_valid_coordinates(coordinates: Coordinates | None) -> bool:
    """Check that both components are finite and within WGS84 bounds."""
    if coordinates is None:
        return False
    lat = coordinates.latitude
    lon = coordinates.longitude
    if not isinstance(lat, int | float) or not isinstance(lon, int | float):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def validate_coordinates(coordinates: Coordinates) -> Coordinates:
    """Return the coordinates unchanged or raise InvalidCoordinatesError."""
    if not is_valid_coordinates(coordinates):
        raise InvalidCoordinatesError(coordinates)
    return coordinates


def distance(a: Coordinates, b: Coordinates) -> float:
    """Haversine distance in meters between two points.

    Symmetric, and exactly 0.0 for identical points.

    Raises:
        InvalidCoordinatesError: If either point is invalid.
    """
    validate_coordinates(a)
    validate_coordinates(b)
    if a == b:
        return 0.0

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(h))


def is_within_threshold(distance_meters: float, threshold_meters: float) -> bool:
    """Inclusive threshold comparison."""
    return distance_meters <= threshold_meters


def is_significant_change(
    previous: Coordinates, current: Coordinates, threshold_meters: float
) -> bool:
    """Whether the move from previous to current is strictly above the threshold."""
    return distance(previous, current) > threshold_meters


class DistanceMemo:
    """Bounded memo of distances keyed by rounded coordinate pairs.

    Owned by its caller; nothing is shared between instances.
    """

    def __init__(self, max_size: int = DEFAULT_MEMO_SIZE) -> None:
        self._max_size = max_size
        self._entries: OrderedDict[tuple[float, float, float, float], float] = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(a: Coordinates, b: Coordinates) -> tuple[float, float, float, float]:
        p = MEMO_COORDINATE_PRECISION
        first = (round(a.latitude, p), round(a.longitude, p))
        second = (round(b.latitude, p), round(b.longitude, p))
        # Order-independent so distance(a, b) and distance(b, a) share an entry
        if second < first:
            first, second = second, first
        return (*first, *second)

    def distance(self, a: Coordinates, b: Coordinates) -> float:
        key = self._key(a, b)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            self._entries.move_to_end(key)
            return cached

        self.misses += 1
        value = distance(a, b)
        self._entries[key] = value
        if len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
        return value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)
