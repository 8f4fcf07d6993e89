"""Error recovery planning models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from nearby_transit.domain.models.coordinates import Coordinates


class ErrorSeverity(StrEnum):
    """How badly an error limits the nearby view."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryStrategy(StrEnum):
    """Recovery approach for an error."""

    RETRY = "retry"
    FALLBACK_DATA = "fallback_data"
    DEGRADE_GRACEFULLY = "degrade_gracefully"
    USER_ACTION = "user_action"
    SHOW_MESSAGE = "show_message"


class ErrorContext(BaseModel):
    """Application state used to pick a recovery plan."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    user_location: Coordinates | None = None
    stations_available: int = 0
    routes_available: int = 0
    vehicles_available: int = 0
    has_gtfs_data: bool = False
    has_configured_location: bool = False
    has_cached_data: bool = False
    is_online: bool = True
    retry_count: int = 0
    search_radius: float | None = None
    timestamp: datetime | None = None


class ErrorRecoveryPlan(BaseModel):
    """User-facing guidance and retry policy for a classified error."""

    model_config = ConfigDict(frozen=True)

    strategy: RecoveryStrategy
    severity: ErrorSeverity
    user_message: str
    technical_message: str
    retryable: bool
    retry_delay_seconds: float | None = None
    user_actions: list[str] = Field(default_factory=list)
