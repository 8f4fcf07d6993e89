"""Nearby view result returned by the controller."""

from dataclasses import dataclass, field

from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.nearby_view_error import NearbyViewError
from nearby_transit.domain.models.route_association import AssociationMode
from nearby_transit.domain.models.selection_result import SelectionResult
from nearby_transit.domain.models.vehicle_group import StationVehicleGroup


@dataclass(frozen=True)
class SelectionMetadata:
    """Counts and timing for one processing pass."""

    total_stations_evaluated: int = 0
    stations_with_routes: int = 0
    selection_time_ms: float = 0.0
    stability_applied: bool = False


@dataclass(frozen=True)
class PerformanceMetrics:
    """Per-phase timings in milliseconds."""

    total_ms: float = 0.0
    association_ms: float = 0.0
    selection_ms: float = 0.0
    vehicle_processing_ms: float = 0.0
    stations_processed: int = 0
    vehicles_processed: int = 0
    warnings: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NearbyViewResult:
    """Everything the presentation layer needs for one nearby view pass.

    Exactly one of selection.has_selection or error holds for a finished
    pass; warnings carry degraded but non-fatal conditions.
    """

    selection: SelectionResult = field(default_factory=SelectionResult)
    station_vehicle_groups: tuple[StationVehicleGroup, ...] = field(default_factory=tuple)
    effective_location: Coordinates | None = None
    threshold_used: float = 0.0
    association_mode: AssociationMode | None = None
    metadata: SelectionMetadata = field(default_factory=SelectionMetadata)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    error: NearbyViewError | None = None
    warnings: tuple[NearbyViewError, ...] = field(default_factory=tuple)

    @property
    def is_success(self) -> bool:
        return self.error is None and self.selection.has_selection

    @property
    def stability_applied(self) -> bool:
        return self.metadata.stability_applied
