"""12-factor configuration adapter using environment variables and TOML config."""

import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.nearby_view_options import (
    MAX_NEARBY_SEARCH_RADIUS,
    NEARBY_STATION_DISTANCE_THRESHOLD,
    NearbyViewOptions,
)
from nearby_transit.domain.models.stability import STATION_STABILITY_THRESHOLD, StabilityMode

TRANZY_API_BASE_URL = "https://api.tranzy.ai/v1"

# Keys accepted in the [nearby] table; [api] keys map onto tranzy_* fields
_NEARBY_KEYS = (
    "enable_second_station",
    "custom_distance_threshold",
    "stability_mode",
    "max_search_radius",
    "max_vehicles_per_station",
    "require_active_routes",
    "enable_stability_tracking",
    "stability_base_threshold",
    "default_latitude",
    "default_longitude",
)
_API_KEYS = {
    "base_url": "tranzy_base_url",
    "api_key": "tranzy_api_key",
    "agency_id": "tranzy_agency_id",
    "timeout": "api_timeout",
}


class AppConfig(BaseSettings):
    """Application configuration following 12-factor principles."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    # Station selection
    enable_second_station: bool = Field(
        default=True, description="Show a second station close to the nearest one"
    )
    custom_distance_threshold: float = Field(
        default=NEARBY_STATION_DISTANCE_THRESHOLD,
        gt=0,
        description="Maximum distance in meters between the nearest and the second station",
    )
    max_search_radius: float = Field(
        default=MAX_NEARBY_SEARCH_RADIUS,
        gt=0,
        description="Search radius in meters around the user",
    )
    max_vehicles_per_station: int = Field(
        default=5, ge=0, description="Maximum number of live vehicles listed per station"
    )
    require_active_routes: bool = Field(
        default=True, description="Skip stations without any associated route"
    )

    # GPS stability
    stability_mode: str = Field(
        default=StabilityMode.NORMAL.value,
        description="GPS stability mode: 'strict', 'normal' or 'flexible'",
    )
    enable_stability_tracking: bool = Field(
        default=True, description="Keep the previous selection on small GPS movements"
    )
    stability_base_threshold: float = Field(
        default=STATION_STABILITY_THRESHOLD,
        gt=0,
        description="Base GPS movement threshold in meters, scaled by stability mode",
    )

    # Tranzy API configuration
    tranzy_base_url: str = Field(default=TRANZY_API_BASE_URL, description="Tranzy API base URL")
    tranzy_api_key: str | None = Field(default=None, description="Tranzy API key")
    tranzy_agency_id: str | None = Field(default=None, description="Tranzy agency identifier")
    api_timeout: int = Field(default=10, gt=0, description="Timeout for API requests in seconds")

    # Fallback location used when no GPS fix is available
    default_latitude: float | None = Field(default=None, ge=-90, le=90)
    default_longitude: float | None = Field(default=None, ge=-180, le=180)

    log_level: str = Field(default="INFO", description="Logging level")

    # TOML config file path
    config_file: str | None = Field(
        default=None,
        description="Path to TOML configuration file with [nearby] and [api] tables",
    )

    @field_validator("stability_mode")
    @classmethod
    def validate_stability_mode(cls, v: str) -> str:
        """Validate stability mode is 'strict', 'normal' or 'flexible'."""
        mode = v.lower()
        if mode not in {m.value for m in StabilityMode}:
            raise ValueError("stability_mode must be either 'strict', 'normal', or 'flexible'")
        return mode

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a standard logging level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("log_level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    def load_toml(self) -> dict[str, Any]:
        """Load the TOML file and apply its [nearby] and [api] settings.

        Values from the file take precedence over environment variables.
        Returns an empty dict when no config_file is set.

        Raises:
            FileNotFoundError: If config_file does not exist.
            pydantic.ValidationError: If a value in the file is invalid.
        """
        if not self.config_file:
            return {}

        config_path = Path(self.config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        nearby = toml_data.get("nearby", {})
        if not isinstance(nearby, dict):
            raise ValueError("TOML config 'nearby' must be a table")
        for key in _NEARBY_KEYS:
            if key in nearby:
                setattr(self, key, nearby[key])

        api_config = toml_data.get("api", {})
        if not isinstance(api_config, dict):
            raise ValueError("TOML config 'api' must be a table")
        for key, field_name in _API_KEYS.items():
            if key in api_config:
                value = api_config[key]
                # Agency ids are numeric in the API but identifiers here
                setattr(self, field_name, str(value) if key == "agency_id" else value)

        if "log_level" in toml_data:
            self.log_level = toml_data["log_level"]

        return toml_data

    @property
    def has_api_credentials(self) -> bool:
        return bool(self.tranzy_api_key and self.tranzy_agency_id)

    def default_location(self) -> Coordinates | None:
        """Configured fallback location, if both coordinates are set."""
        if self.default_latitude is None or self.default_longitude is None:
            return None
        return Coordinates(latitude=self.default_latitude, longitude=self.default_longitude)

    def to_nearby_view_options(self) -> NearbyViewOptions:
        return NearbyViewOptions(
            enable_second_station=self.enable_second_station,
            custom_distance_threshold=self.custom_distance_threshold,
            stability_mode=StabilityMode(self.stability_mode),
            max_search_radius=self.max_search_radius,
            max_vehicles_per_station=self.max_vehicles_per_station,
            require_active_routes=self.require_active_routes,
            enable_stability_tracking=self.enable_stability_tracking,
            stability_base_threshold=self.stability_base_threshold,
        )
