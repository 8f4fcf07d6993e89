"""Tests for error classification and recovery planning."""

import aiohttp
import pytest
from pydantic import ValidationError

from nearby_transit.application.services import (
    RetryTracker,
    build_error,
    classify_error,
    classify_exception,
    error_from_exception,
    should_attempt_recovery,
)
from nearby_transit.application.services.error_classification import backoff_delay
from nearby_transit.domain.geometry import InvalidCoordinatesError
from nearby_transit.domain.models import (
    Coordinates,
    ErrorContext,
    ErrorSeverity,
    FallbackAction,
    NearbyViewErrorKind,
    NearbyViewOptions,
    RecoveryStrategy,
)


@pytest.mark.parametrize(
    ("kind", "retryable"),
    [
        (NearbyViewErrorKind.NO_GPS_LOCATION, False),
        (NearbyViewErrorKind.NO_STATIONS_IN_RANGE, True),
        (NearbyViewErrorKind.NO_ROUTES_AVAILABLE, True),
        (NearbyViewErrorKind.STATION_SELECTION_FAILED, True),
        (NearbyViewErrorKind.VEHICLE_PROCESSING_FAILED, True),
        (NearbyViewErrorKind.DATA_LOADING_ERROR, True),
        (NearbyViewErrorKind.CONFIGURATION_ERROR, False),
        (NearbyViewErrorKind.OFFLINE_MODE, True),
        (NearbyViewErrorKind.CACHE_UNAVAILABLE, True),
    ],
)
def test_build_error_uses_kind_defaults(kind: NearbyViewErrorKind, retryable: bool) -> None:
    """Given an error kind, then the built error carries its default retryable flag."""
    error = build_error(kind)

    assert error.kind is kind
    assert error.retryable is retryable
    assert error.message
    assert error.context == {}


def test_build_error_keeps_message_and_context() -> None:
    """Given an explicit message and context, then both are kept."""
    error = build_error(NearbyViewErrorKind.DATA_LOADING_ERROR, "timeout", {"url": "/stops"})

    assert error.message == "timeout"
    assert error.context == {"url": "/stops"}
    assert error.fallback_action is FallbackAction.USE_CACHED_DATA


def _validation_error() -> ValidationError:
    try:
        NearbyViewOptions(max_search_radius=-5)
    except ValidationError as e:
        return e
    raise AssertionError("expected a validation error")


@pytest.mark.parametrize(
    ("exc", "kind"),
    [
        (aiohttp.ClientConnectionError("refused"), NearbyViewErrorKind.DATA_LOADING_ERROR),
        (TimeoutError(), NearbyViewErrorKind.DATA_LOADING_ERROR),
        (InvalidCoordinatesError("bad"), NearbyViewErrorKind.NO_GPS_LOCATION),
        (_validation_error(), NearbyViewErrorKind.CONFIGURATION_ERROR),
        (KeyError("x"), NearbyViewErrorKind.STATION_SELECTION_FAILED),
    ],
)
def test_classify_exception(exc: BaseException, kind: NearbyViewErrorKind) -> None:
    """Given a raw exception, then it maps onto the error taxonomy."""
    assert classify_exception(exc) is kind


def test_error_from_exception_keeps_original_message() -> None:
    """Given an exception, then the wrapped error records its message and type."""
    error = error_from_exception(aiohttp.ClientConnectionError("refused"), {"attempt": 2})

    assert error.kind is NearbyViewErrorKind.DATA_LOADING_ERROR
    assert error.context == {
        "attempt": 2,
        "original_error": "refused",
        "error_type": "ClientConnectionError",
    }
    assert "refused" in error.message


def test_backoff_grows_exponentially_and_is_capped() -> None:
    """Given increasing retry counts, then delays double until the cap."""
    assert [backoff_delay(n, 1.0, 10.0) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]
    assert [backoff_delay(n, 5.0, 30.0) for n in range(4)] == [5.0, 10.0, 20.0, 30.0]


class TestClassifyError:
    """Tests for context-aware recovery plans."""

    def test_missing_location_without_default_needs_user_action(self) -> None:
        """Given no location and no default, then the user must act."""
        plan = classify_error(build_error(NearbyViewErrorKind.NO_GPS_LOCATION))

        assert plan.strategy is RecoveryStrategy.USER_ACTION
        assert plan.severity is ErrorSeverity.HIGH
        assert not plan.retryable
        assert plan.user_actions

    def test_missing_location_with_default_falls_back(self) -> None:
        """Given a configured default location, then it is used instead."""
        plan = classify_error(
            build_error(NearbyViewErrorKind.NO_GPS_LOCATION),
            ErrorContext(has_configured_location=True),
        )

        assert plan.strategy is RecoveryStrategy.FALLBACK_DATA
        assert plan.retryable

    def test_invalid_location_with_fix_falls_back(self) -> None:
        """Given a location that failed validation, then the default location is suggested."""
        plan = classify_error(
            build_error(NearbyViewErrorKind.NO_GPS_LOCATION),
            ErrorContext(user_location=Coordinates(46.77, 23.62)),
        )

        assert plan.strategy is RecoveryStrategy.FALLBACK_DATA
        assert plan.retry_delay_seconds == 5.0

    def test_no_stations_in_area_mentions_radius(self) -> None:
        """Given stations exist but none in range, then the message names the radius."""
        error = build_error(
            NearbyViewErrorKind.NO_STATIONS_IN_RANGE, context={"search_radius": 5000.0}
        )

        plan = classify_error(error, ErrorContext(stations_available=120))

        assert plan.strategy is RecoveryStrategy.DEGRADE_GRACEFULLY
        assert "within 5 km" in plan.user_message
        assert not plan.retryable

    def test_no_station_data_is_retried(self) -> None:
        """Given no station data at all, then a later retry is planned."""
        plan = classify_error(build_error(NearbyViewErrorKind.NO_STATIONS_IN_RANGE))

        assert plan.retryable
        assert plan.retry_delay_seconds == 30.0

    @pytest.mark.parametrize(
        ("routes_available", "strategy"),
        [(0, RecoveryStrategy.RETRY), (12, RecoveryStrategy.SHOW_MESSAGE)],
    )
    def test_no_routes(self, routes_available: int, strategy: RecoveryStrategy) -> None:
        """Given route availability, then missing data is retried and limited service shown."""
        plan = classify_error(
            build_error(NearbyViewErrorKind.NO_ROUTES_AVAILABLE),
            ErrorContext(routes_available=routes_available),
        )

        assert plan.strategy is strategy

    @pytest.mark.parametrize(
        ("retry_count", "delay"), [(0, 1.0), (1, 2.0), (2, 4.0)]
    )
    def test_selection_failure_backs_off(self, retry_count: int, delay: float) -> None:
        """Given earlier retries, then the delay doubles."""
        plan = classify_error(
            build_error(NearbyViewErrorKind.STATION_SELECTION_FAILED),
            ErrorContext(retry_count=retry_count),
        )

        assert plan.strategy is RecoveryStrategy.RETRY
        assert plan.retry_delay_seconds == delay

    def test_selection_failure_gives_up_after_three_retries(self) -> None:
        """Given three retries, then all stations are shown instead."""
        plan = classify_error(
            build_error(NearbyViewErrorKind.STATION_SELECTION_FAILED),
            ErrorContext(retry_count=3),
        )

        assert plan.strategy is RecoveryStrategy.FALLBACK_DATA
        assert not plan.retryable
        assert "all available stations" in plan.user_message

    def test_data_loading_prefers_cached_data(self) -> None:
        """Given cached data, then it is used while retrying."""
        plan = classify_error(
            build_error(NearbyViewErrorKind.DATA_LOADING_ERROR),
            ErrorContext(has_cached_data=True, retry_count=1),
        )

        assert plan.strategy is RecoveryStrategy.FALLBACK_DATA
        assert plan.retry_delay_seconds == 10.0

    def test_data_loading_without_cache_gives_up(self) -> None:
        """Given no cache and exhausted retries, then the error is final."""
        plan = classify_error(
            build_error(NearbyViewErrorKind.DATA_LOADING_ERROR), ErrorContext(retry_count=3)
        )

        assert plan.strategy is RecoveryStrategy.SHOW_MESSAGE
        assert not plan.retryable

    def test_configuration_error_is_critical(self) -> None:
        """Given a configuration error, then the user must fix the setup."""
        plan = classify_error(build_error(NearbyViewErrorKind.CONFIGURATION_ERROR))

        assert plan.severity is ErrorSeverity.CRITICAL
        assert plan.strategy is RecoveryStrategy.USER_ACTION
        assert not plan.retryable

    @pytest.mark.parametrize(
        "kind",
        [
            NearbyViewErrorKind.VEHICLE_PROCESSING_FAILED,
            NearbyViewErrorKind.OFFLINE_MODE,
            NearbyViewErrorKind.CACHE_UNAVAILABLE,
        ],
    )
    def test_every_kind_has_a_plan(self, kind: NearbyViewErrorKind) -> None:
        """Given any remaining kind, then a retryable plan with guidance is produced."""
        plan = classify_error(build_error(kind))

        assert plan.retryable
        assert plan.user_message
        assert plan.user_actions


class TestRecoveryDecision:
    """Tests for should_attempt_recovery and RetryTracker."""

    def test_retryable_error_within_budget(self) -> None:
        """Given a retryable error and no retries, then recovery is attempted."""
        error = build_error(NearbyViewErrorKind.NO_ROUTES_AVAILABLE)

        assert should_attempt_recovery(error, ErrorContext())
        assert not should_attempt_recovery(error, ErrorContext(retry_count=3))

    def test_configuration_error_is_never_retried(self) -> None:
        """Given a configuration error, then recovery is never attempted."""
        error = build_error(NearbyViewErrorKind.CONFIGURATION_ERROR).model_copy(
            update={"retryable": True}
        )

        assert not should_attempt_recovery(error, ErrorContext())

    def test_tracker_counts_per_key(self) -> None:
        """Given failures under two keys, then counts are independent."""
        tracker = RetryTracker()

        assert tracker.record_failure("stations") == 1
        assert tracker.record_failure("stations") == 2
        assert tracker.record_failure("vehicles") == 1

        tracker.record_success("stations")
        assert tracker.retry_count("stations") == 0
        assert tracker.retry_count("vehicles") == 1

        tracker.reset()
        assert tracker.retry_count("vehicles") == 0

    def test_tracker_stops_after_max_retries(self) -> None:
        """Given a tracker limited to two retries, then the third attempt is refused."""
        tracker = RetryTracker(max_retries=2)
        error = build_error(NearbyViewErrorKind.DATA_LOADING_ERROR)

        assert tracker.should_retry("load", error)
        tracker.record_failure("load")
        assert tracker.should_retry("load", error)
        tracker.record_failure("load")
        assert not tracker.should_retry("load", error)

    def test_tracker_delay_depends_on_kind(self) -> None:
        """Given data loading and selection errors, then their backoff bases differ."""
        tracker = RetryTracker()
        tracker.record_failure("k")

        assert tracker.next_delay("k", build_error(NearbyViewErrorKind.DATA_LOADING_ERROR)) == 10.0
        assert tracker.next_delay("k", build_error(NearbyViewErrorKind.NO_ROUTES_AVAILABLE)) == 2.0
