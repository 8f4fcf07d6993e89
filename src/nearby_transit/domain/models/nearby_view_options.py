"""Nearby view configuration surface."""

from pydantic import BaseModel, ConfigDict, Field

from nearby_transit.domain.models.stability import STATION_STABILITY_THRESHOLD, StabilityMode

NEARBY_STATION_DISTANCE_THRESHOLD = 200.0  # meters between closest and second station
MAX_NEARBY_SEARCH_RADIUS = 5000.0  # meters from the user


class NearbyViewOptions(BaseModel):
    """Options controlling station selection and GPS stability."""

    model_config = ConfigDict(frozen=True)

    enable_second_station: bool = True
    custom_distance_threshold: float = Field(
        default=NEARBY_STATION_DISTANCE_THRESHOLD,
        gt=0,
        description="Maximum distance in meters between the closest and the second station",
    )
    stability_mode: StabilityMode = StabilityMode.NORMAL
    max_search_radius: float = Field(
        default=MAX_NEARBY_SEARCH_RADIUS,
        gt=0,
        description="Stations farther than this from the user (meters) are not considered",
    )
    max_vehicles_per_station: int = Field(default=5, ge=0)
    require_active_routes: bool = True
    enable_stability_tracking: bool = True
    stability_base_threshold: float = Field(
        default=STATION_STABILITY_THRESHOLD,
        gt=0,
        description="Base GPS movement threshold in meters, scaled per stability mode",
    )
