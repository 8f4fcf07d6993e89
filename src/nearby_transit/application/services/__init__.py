"""Application services."""

from nearby_transit.application.services.error_classification import (
    RetryTracker,
    build_error,
    classify_error,
    classify_exception,
    error_from_exception,
    should_attempt_recovery,
)
from nearby_transit.application.services.gps_stability_engine import (
    GpsStabilityEngine,
    calculate_stability_score,
)
from nearby_transit.application.services.nearby_view_controller import NearbyViewController
from nearby_transit.application.services.performance_monitor import PerformanceMonitor
from nearby_transit.application.services.route_association_filter import (
    RouteAssociationCache,
    RouteAssociationFilter,
)
from nearby_transit.application.services.station_selector import SelectionOutcome, StationSelector
from nearby_transit.application.services.vehicle_station_associator import (
    VehicleStationAssociator,
    build_stop_time_index,
)

__all__ = [
    "GpsStabilityEngine",
    "NearbyViewController",
    "PerformanceMonitor",
    "RetryTracker",
    "RouteAssociationCache",
    "RouteAssociationFilter",
    "SelectionOutcome",
    "StationSelector",
    "VehicleStationAssociator",
    "build_error",
    "build_stop_time_index",
    "calculate_stability_score",
    "classify_error",
    "classify_exception",
    "error_from_exception",
    "should_attempt_recovery",
]
