"""Domain models for nearby transit."""

from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.error_recovery import (
    ErrorContext,
    ErrorRecoveryPlan,
    ErrorSeverity,
    RecoveryStrategy,
)
from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.nearby_view_error import (
    FallbackAction,
    NearbyViewError,
    NearbyViewErrorKind,
)
from nearby_transit.domain.models.nearby_view_options import NearbyViewOptions
from nearby_transit.domain.models.nearby_view_result import (
    NearbyViewResult,
    PerformanceMetrics,
    SelectionMetadata,
)
from nearby_transit.domain.models.route import Route, RouteMode
from nearby_transit.domain.models.route_association import (
    AssociationMode,
    RouteAssociationIndex,
    RouteAssociationStatistics,
    TripSource,
)
from nearby_transit.domain.models.selection_result import (
    RejectedStation,
    RejectionReason,
    SelectionResult,
)
from nearby_transit.domain.models.stability import (
    LocationHistoryEntry,
    StabilityContext,
    StabilityDecision,
    StabilityMetrics,
    StabilityMode,
    StabilityProfile,
    StabilityState,
)
from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.station_with_routes import StationWithRoutes
from nearby_transit.domain.models.stop_time import StopTime
from nearby_transit.domain.models.transit_snapshot import TransitSnapshot
from nearby_transit.domain.models.trip import Trip, TripDirection
from nearby_transit.domain.models.vehicle_group import (
    EnrichedVehicle,
    RouteVehicleSummary,
    StationVehicleGroup,
)

__all__ = [
    "AssociationMode",
    "Coordinates",
    "EnrichedVehicle",
    "ErrorContext",
    "ErrorRecoveryPlan",
    "ErrorSeverity",
    "FallbackAction",
    "LiveVehicle",
    "LocationHistoryEntry",
    "NearbyViewError",
    "NearbyViewErrorKind",
    "NearbyViewOptions",
    "NearbyViewResult",
    "PerformanceMetrics",
    "RecoveryStrategy",
    "RejectedStation",
    "RejectionReason",
    "Route",
    "RouteAssociationIndex",
    "RouteAssociationStatistics",
    "RouteMode",
    "RouteVehicleSummary",
    "SelectionMetadata",
    "SelectionResult",
    "StabilityContext",
    "StabilityDecision",
    "StabilityMetrics",
    "StabilityMode",
    "StabilityProfile",
    "StabilityState",
    "Station",
    "StationVehicleGroup",
    "StationWithRoutes",
    "StopTime",
    "TransitSnapshot",
    "Trip",
    "TripDirection",
    "TripSource",
]
