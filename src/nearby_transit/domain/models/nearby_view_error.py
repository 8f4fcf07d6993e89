"""Nearby view error taxonomy."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NearbyViewErrorKind(StrEnum):
    """Closed set of error kinds reported by the nearby view."""

    NO_GPS_LOCATION = "no_gps_location"
    NO_STATIONS_IN_RANGE = "no_stations_in_range"
    NO_ROUTES_AVAILABLE = "no_routes_available"
    STATION_SELECTION_FAILED = "station_selection_failed"
    VEHICLE_PROCESSING_FAILED = "vehicle_processing_failed"
    DATA_LOADING_ERROR = "data_loading_error"
    CONFIGURATION_ERROR = "configuration_error"
    OFFLINE_MODE = "offline_mode"
    CACHE_UNAVAILABLE = "cache_unavailable"


class FallbackAction(StrEnum):
    """What the presentation layer should do instead of showing results."""

    SHOW_MESSAGE = "show_message"
    RETRY = "retry"
    USE_CACHED_DATA = "use_cached_data"
    SHOW_ALL_STATIONS = "show_all_stations"


class NearbyViewError(BaseModel):
    """A classified nearby view failure."""

    model_config = ConfigDict(frozen=True)

    kind: NearbyViewErrorKind
    message: str
    retryable: bool
    fallback_action: FallbackAction = FallbackAction.SHOW_MESSAGE
    context: dict[str, Any] = Field(default_factory=dict)
