"""Nearby view error classification and recovery planning."""

import logging
from dataclasses import dataclass
from typing import Any

import aiohttp
from pydantic import ValidationError

from nearby_transit.domain.geometry import InvalidCoordinatesError
from nearby_transit.domain.models.error_recovery import (
    ErrorContext,
    ErrorRecoveryPlan,
    ErrorSeverity,
    RecoveryStrategy,
)
from nearby_transit.domain.models.nearby_view_error import (
    FallbackAction,
    NearbyViewError,
    NearbyViewErrorKind,
)

logger = logging.getLogger(__name__)

MAX_RETRIES = 3

SELECTION_RETRY_BASE_SECONDS = 1.0
SELECTION_RETRY_CAP_SECONDS = 10.0
DATA_LOADING_RETRY_BASE_SECONDS = 5.0
DATA_LOADING_RETRY_CAP_SECONDS = 30.0


@dataclass(frozen=True)
class ErrorKindDefaults:
    """Static properties of an error kind."""

    retryable: bool
    severity: ErrorSeverity
    strategy: RecoveryStrategy
    fallback_action: FallbackAction
    message: str


ERROR_KIND_DEFAULTS: dict[NearbyViewErrorKind, ErrorKindDefaults] = {
    NearbyViewErrorKind.NO_GPS_LOCATION: ErrorKindDefaults(
        False,
        ErrorSeverity.HIGH,
        RecoveryStrategy.USER_ACTION,
        FallbackAction.SHOW_MESSAGE,
        "Location is required to find nearby stations",
    ),
    NearbyViewErrorKind.NO_STATIONS_IN_RANGE: ErrorKindDefaults(
        True,
        ErrorSeverity.MEDIUM,
        RecoveryStrategy.RETRY,
        FallbackAction.SHOW_MESSAGE,
        "No stations found near your location",
    ),
    NearbyViewErrorKind.NO_ROUTES_AVAILABLE: ErrorKindDefaults(
        True,
        ErrorSeverity.MEDIUM,
        RecoveryStrategy.RETRY,
        FallbackAction.SHOW_MESSAGE,
        "No active routes available",
    ),
    NearbyViewErrorKind.STATION_SELECTION_FAILED: ErrorKindDefaults(
        True,
        ErrorSeverity.MEDIUM,
        RecoveryStrategy.RETRY,
        FallbackAction.RETRY,
        "Station selection failed",
    ),
    NearbyViewErrorKind.VEHICLE_PROCESSING_FAILED: ErrorKindDefaults(
        True,
        ErrorSeverity.LOW,
        RecoveryStrategy.DEGRADE_GRACEFULLY,
        FallbackAction.SHOW_MESSAGE,
        "Live vehicle information is unavailable for this station",
    ),
    NearbyViewErrorKind.DATA_LOADING_ERROR: ErrorKindDefaults(
        True,
        ErrorSeverity.MEDIUM,
        RecoveryStrategy.FALLBACK_DATA,
        FallbackAction.USE_CACHED_DATA,
        "Transit data could not be loaded",
    ),
    NearbyViewErrorKind.CONFIGURATION_ERROR: ErrorKindDefaults(
        False,
        ErrorSeverity.CRITICAL,
        RecoveryStrategy.USER_ACTION,
        FallbackAction.SHOW_MESSAGE,
        "Configuration is incomplete",
    ),
    NearbyViewErrorKind.OFFLINE_MODE: ErrorKindDefaults(
        True,
        ErrorSeverity.LOW,
        RecoveryStrategy.FALLBACK_DATA,
        FallbackAction.USE_CACHED_DATA,
        "Operating in offline mode",
    ),
    NearbyViewErrorKind.CACHE_UNAVAILABLE: ErrorKindDefaults(
        True,
        ErrorSeverity.MEDIUM,
        RecoveryStrategy.RETRY,
        FallbackAction.RETRY,
        "Cache unavailable, loading fresh data",
    ),
}


def backoff_delay(retry_count: int, base_seconds: float, cap_seconds: float) -> float:
    """Exponential backoff: base * 2**retry_count, capped."""
    return min(base_seconds * 2 ** max(retry_count, 0), cap_seconds)


def build_error(
    kind: NearbyViewErrorKind,
    message: str | None = None,
    context: dict[str, Any] | None = None,
) -> NearbyViewError:
    """Create an error with the kind's default retryable flag and fallback action."""
    defaults = ERROR_KIND_DEFAULTS[kind]
    return NearbyViewError(
        kind=kind,
        message=message or defaults.message,
        retryable=defaults.retryable,
        fallback_action=defaults.fallback_action,
        context=context or {},
    )


def classify_exception(exc: BaseException) -> NearbyViewErrorKind:
    """Map a raw exception onto the error taxonomy."""
    if isinstance(exc, aiohttp.ClientError | TimeoutError):
        return NearbyViewErrorKind.DATA_LOADING_ERROR
    if isinstance(exc, InvalidCoordinatesError):
        return NearbyViewErrorKind.NO_GPS_LOCATION
    if isinstance(exc, ValidationError):
        return NearbyViewErrorKind.CONFIGURATION_ERROR
    return NearbyViewErrorKind.STATION_SELECTION_FAILED


def error_from_exception(
    exc: BaseException, context: dict[str, Any] | None = None
) -> NearbyViewError:
    """Classify an exception and wrap it, keeping the original message in context."""
    kind = classify_exception(exc)
    return build_error(
        kind,
        f"{ERROR_KIND_DEFAULTS[kind].message}: {exc}",
        {**(context or {}), "original_error": str(exc), "error_type": type(exc).__name__},
    )


def should_attempt_recovery(
    error: NearbyViewError, context: ErrorContext, max_retries: int = MAX_RETRIES
) -> bool:
    """Whether an automatic retry makes sense for this error."""
    if context.retry_count >= max_retries:
        return False
    if error.kind is NearbyViewErrorKind.CONFIGURATION_ERROR:
        return False
    return error.retryable


def classify_error(
    error: NearbyViewError, context: ErrorContext | None = None
) -> ErrorRecoveryPlan:
    """Turn an error plus application state into a recovery plan."""
    context = context or ErrorContext()
    handler = _HANDLERS[error.kind]
    plan = handler(error, context)
    logger.debug(
        f"Classified {error.kind} as {plan.severity}/{plan.strategy} "
        f"(retryable={plan.retryable}, delay={plan.retry_delay_seconds})"
    )
    return plan


def _location_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    if context.user_location is None:
        if context.has_configured_location:
            return ErrorRecoveryPlan(
                strategy=RecoveryStrategy.FALLBACK_DATA,
                severity=ErrorSeverity.MEDIUM,
                user_message="Location unavailable. Using your configured default location.",
                technical_message="No GPS fix, falling back to configured coordinates",
                retryable=True,
                retry_delay_seconds=10.0,
                user_actions=[
                    "Enable location services for live updates",
                    "Update your default location in the configuration if needed",
                ],
            )
        return ErrorRecoveryPlan(
            strategy=RecoveryStrategy.USER_ACTION,
            severity=ErrorSeverity.HIGH,
            user_message=(
                "Location is required to find nearby stations. "
                "Enable location services or configure a default location."
            ),
            technical_message="No GPS fix and no default location configured",
            retryable=False,
            user_actions=[
                "Enable location services on your device",
                "Set default_latitude and default_longitude in the configuration",
                "Pass --lat and --lon explicitly",
            ],
        )
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.FALLBACK_DATA,
        severity=ErrorSeverity.MEDIUM,
        user_message="Unable to read your current location. Using the default location.",
        technical_message=f"GPS coordinates invalid: {error.message}",
        retryable=True,
        retry_delay_seconds=5.0,
        user_actions=["Check your device location settings", "Set a manual location"],
    )


def _no_stations_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    if context.stations_available <= 0:
        return ErrorRecoveryPlan(
            strategy=RecoveryStrategy.SHOW_MESSAGE,
            severity=ErrorSeverity.MEDIUM,
            user_message="No stations found in your area. This might be a temporary issue.",
            technical_message="No station data available from the data source",
            retryable=True,
            retry_delay_seconds=30.0,
            user_actions=["Try again in a few minutes", "Check your internet connection"],
        )
    radius = context.search_radius or error.context.get("search_radius")
    within = f" within {radius / 1000:g} km" if radius else ""
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.DEGRADE_GRACEFULLY,
        severity=ErrorSeverity.LOW,
        user_message=f"No stations found{within} of your location. Try a different area.",
        technical_message="No stations within search radius",
        retryable=False,
        user_actions=[
            "Move to a different location",
            "Increase the search radius",
        ],
    )


def _no_routes_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    if context.routes_available <= 0:
        return ErrorRecoveryPlan(
            strategy=RecoveryStrategy.RETRY,
            severity=ErrorSeverity.HIGH,
            user_message="Route information is temporarily unavailable. Retrying...",
            technical_message="No route data available from the data source",
            retryable=True,
            retry_delay_seconds=10.0,
            user_actions=["Wait for automatic retry", "Check your internet connection"],
        )
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.SHOW_MESSAGE,
        severity=ErrorSeverity.MEDIUM,
        user_message="No active routes found for nearby stations. Service may be limited.",
        technical_message="Stations available but no route associations found",
        retryable=True,
        retry_delay_seconds=60.0,
        user_actions=["Check if service is running today", "Try again later"],
    )


def _selection_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    retry = context.retry_count
    if retry < MAX_RETRIES:
        return ErrorRecoveryPlan(
            strategy=RecoveryStrategy.RETRY,
            severity=ErrorSeverity.MEDIUM,
            user_message="Having trouble finding nearby stations. Retrying...",
            technical_message=f"Station selection failed: {error.message}",
            retryable=True,
            retry_delay_seconds=backoff_delay(
                retry, SELECTION_RETRY_BASE_SECONDS, SELECTION_RETRY_CAP_SECONDS
            ),
            user_actions=["Please wait while we retry"],
        )
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.FALLBACK_DATA,
        severity=ErrorSeverity.HIGH,
        user_message="Unable to find nearby stations. Showing all available stations.",
        technical_message=f"Station selection failed after {retry} retries",
        retryable=False,
        user_actions=["Check your location settings", "Try again later"],
    )


def _vehicle_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.DEGRADE_GRACEFULLY,
        severity=ErrorSeverity.LOW,
        user_message="Live vehicle information may be limited. Showing available data.",
        technical_message=f"Vehicle processing failed: {error.message}",
        retryable=True,
        retry_delay_seconds=30.0,
        user_actions=[
            "Station information is still available",
            "Live vehicles will be retried automatically",
        ],
    )


def _data_loading_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    retry = context.retry_count
    delay = backoff_delay(retry, DATA_LOADING_RETRY_BASE_SECONDS, DATA_LOADING_RETRY_CAP_SECONDS)
    if context.has_cached_data or context.has_gtfs_data or context.stations_available > 0:
        return ErrorRecoveryPlan(
            strategy=RecoveryStrategy.FALLBACK_DATA,
            severity=ErrorSeverity.LOW,
            user_message="Using cached data while we retry loading fresh information.",
            technical_message=f"Data loading failed, using cached data: {error.message}",
            retryable=True,
            retry_delay_seconds=delay,
            user_actions=[
                "Cached data is being displayed",
                "Fresh data will be loaded automatically",
            ],
        )
    if retry < MAX_RETRIES:
        return ErrorRecoveryPlan(
            strategy=RecoveryStrategy.RETRY,
            severity=ErrorSeverity.MEDIUM,
            user_message="Having trouble loading transit data. Retrying...",
            technical_message=f"Data loading failed (attempt {retry + 1}): {error.message}",
            retryable=True,
            retry_delay_seconds=delay,
            user_actions=[
                "Check your internet connection",
                f"Retry attempt {retry + 1} of {MAX_RETRIES}",
            ],
        )
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.SHOW_MESSAGE,
        severity=ErrorSeverity.HIGH,
        user_message="Unable to load transit data. Please check your connection and try again.",
        technical_message=f"Data loading failed after {retry} retries: {error.message}",
        retryable=False,
        user_actions=["Check your internet connection", "Try again later"],
    )


def _configuration_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.USER_ACTION,
        severity=ErrorSeverity.CRITICAL,
        user_message="Configuration is incomplete. Please complete the setup.",
        technical_message=f"Configuration error: {error.message}",
        retryable=False,
        user_actions=[
            "Check your API key and agency id",
            "Check the values in your configuration file and environment",
        ],
    )


def _offline_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    if context.has_cached_data or context.has_gtfs_data or context.stations_available > 0:
        return ErrorRecoveryPlan(
            strategy=RecoveryStrategy.FALLBACK_DATA,
            severity=ErrorSeverity.LOW,
            user_message="You're offline. Showing cached transit information.",
            technical_message="Operating in offline mode with cached data",
            retryable=True,
            retry_delay_seconds=60.0,
            user_actions=[
                "Cached information is being displayed",
                "Live updates resume when the connection is restored",
            ],
        )
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.SHOW_MESSAGE,
        severity=ErrorSeverity.HIGH,
        user_message="You're offline and no cached data is available.",
        technical_message="Offline mode with no cached data available",
        retryable=True,
        retry_delay_seconds=30.0,
        user_actions=["Check your internet connection"],
    )


def _cache_plan(error: NearbyViewError, context: ErrorContext) -> ErrorRecoveryPlan:
    return ErrorRecoveryPlan(
        strategy=RecoveryStrategy.RETRY,
        severity=ErrorSeverity.MEDIUM,
        user_message="Cache unavailable. Loading fresh data...",
        technical_message=f"Cache error: {error.message}",
        retryable=True,
        retry_delay_seconds=3.0,
        user_actions=["Fresh data is being loaded", "Performance may be slower without cache"],
    )


_HANDLERS = {
    NearbyViewErrorKind.NO_GPS_LOCATION: _location_plan,
    NearbyViewErrorKind.NO_STATIONS_IN_RANGE: _no_stations_plan,
    NearbyViewErrorKind.NO_ROUTES_AVAILABLE: _no_routes_plan,
    NearbyViewErrorKind.STATION_SELECTION_FAILED: _selection_plan,
    NearbyViewErrorKind.VEHICLE_PROCESSING_FAILED: _vehicle_plan,
    NearbyViewErrorKind.DATA_LOADING_ERROR: _data_loading_plan,
    NearbyViewErrorKind.CONFIGURATION_ERROR: _configuration_plan,
    NearbyViewErrorKind.OFFLINE_MODE: _offline_plan,
    NearbyViewErrorKind.CACHE_UNAVAILABLE: _cache_plan,
}


class RetryTracker:
    """Consecutive retry counters per caller-supplied error context key."""

    def __init__(self, max_retries: int = MAX_RETRIES) -> None:
        self._max_retries = max_retries
        self._counts: dict[str, int] = {}

    def retry_count(self, key: str) -> int:
        return self._counts.get(key, 0)

    def record_failure(self, key: str) -> int:
        """Count one more failure for key and return the new count."""
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]

    def record_success(self, key: str) -> None:
        self._counts.pop(key, None)

    def should_retry(self, key: str, error: NearbyViewError) -> bool:
        context = ErrorContext(retry_count=self.retry_count(key))
        return should_attempt_recovery(error, context, self._max_retries)

    def next_delay(self, key: str, error: NearbyViewError) -> float:
        """Backoff delay in seconds before the next attempt for key."""
        retry = self.retry_count(key)
        if error.kind is NearbyViewErrorKind.DATA_LOADING_ERROR:
            return backoff_delay(
                retry, DATA_LOADING_RETRY_BASE_SECONDS, DATA_LOADING_RETRY_CAP_SECONDS
            )
        return backoff_delay(retry, SELECTION_RETRY_BASE_SECONDS, SELECTION_RETRY_CAP_SECONDS)

    def reset(self) -> None:
        self._counts.clear()
