"""Nearby view controller.

Single entry point turning a GPS fix plus transit data into the stations and
live vehicles to show. Every failure comes back as a classified error on the
result; nothing raises out of process_nearby_view.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from nearby_transit.application.services.error_classification import build_error
from nearby_transit.application.services.gps_stability_engine import GpsStabilityEngine
from nearby_transit.application.services.performance_monitor import PerformanceMonitor
from nearby_transit.application.services.route_association_filter import RouteAssociationFilter
from nearby_transit.application.services.station_selector import StationSelector
from nearby_transit.application.services.vehicle_station_associator import (
    VehicleStationAssociator,
    build_stop_time_index,
)
from nearby_transit.domain.geometry import is_valid_coordinates
from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.live_vehicle import LiveVehicle
from nearby_transit.domain.models.nearby_view_error import NearbyViewError, NearbyViewErrorKind
from nearby_transit.domain.models.nearby_view_options import NearbyViewOptions
from nearby_transit.domain.models.nearby_view_result import NearbyViewResult, SelectionMetadata
from nearby_transit.domain.models.route import Route
from nearby_transit.domain.models.route_association import AssociationMode
from nearby_transit.domain.models.selection_result import SelectionResult
from nearby_transit.domain.models.stability import StabilityContext, StabilityMetrics
from nearby_transit.domain.models.station import Station
from nearby_transit.domain.models.stop_time import StopTime
from nearby_transit.domain.models.trip import Trip
from nearby_transit.domain.models.vehicle_group import StationVehicleGroup

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _is_collection(value: Any) -> bool:
    return isinstance(value, list | tuple)


class NearbyViewController:
    """Orchestrates association, selection, vehicle grouping and GPS stability.

    Holds the stability context of one user session, so calls on one
    instance must not overlap.
    """

    def __init__(
        self,
        options: NearbyViewOptions | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        association_filter: RouteAssociationFilter | None = None,
        station_selector: StationSelector | None = None,
        vehicle_associator: VehicleStationAssociator | None = None,
    ) -> None:
        self._options = options or NearbyViewOptions()
        self._clock = clock or _utc_now
        self._filter = association_filter or RouteAssociationFilter()
        self._selector = station_selector or StationSelector()
        self._associator = vehicle_associator or VehicleStationAssociator()
        self._engine = GpsStabilityEngine(
            self._options.stability_mode,
            self._options.stability_base_threshold,
            clock=self._clock,
        )
        self._last_association_mode: AssociationMode | None = None
        self._last_stations_with_routes = 0

    @property
    def options(self) -> NearbyViewOptions:
        return self._options

    @property
    def stability_context(self) -> StabilityContext:
        return self._engine.context

    @property
    def association_filter(self) -> RouteAssociationFilter:
        return self._filter

    def update_options(self, **changes: Any) -> NearbyViewOptions:
        """Apply option changes; validation errors propagate to the caller.

        Raises:
            pydantic.ValidationError: If a changed value is invalid.
        """
        updated = NearbyViewOptions.model_validate({**self._options.model_dump(), **changes})
        stability_changed = (
            updated.stability_mode != self._options.stability_mode
            or updated.stability_base_threshold != self._options.stability_base_threshold
        )
        self._options = updated
        if stability_changed:
            self._engine.configure(updated.stability_mode, updated.stability_base_threshold)
        logger.info(f"Nearby view options updated: {sorted(changes)}")
        return updated

    def reset_stability_context(self) -> None:
        self._engine.reset()

    def force_new_selection(self) -> None:
        self._engine.force_new_selection()

    def is_selection_stable(self) -> bool:
        return self._engine.is_selection_stable(self._clock())

    def stability_metrics(self) -> StabilityMetrics:
        return self._engine.metrics(self._clock())

    def process_nearby_view(
        self,
        user_location: Coordinates | None,
        stations: Sequence[Station],
        routes: Sequence[Route],
        vehicles: Sequence[LiveVehicle],
        stop_times: Sequence[StopTime] | None = None,
        trips: Sequence[Trip] | None = None,
    ) -> NearbyViewResult:
        """Compute the nearby view for one GPS fix.

        Args:
            user_location: Current fix, or None when no location is available.
            stations: All known stations.
            routes: All known routes.
            vehicles: Current live vehicles; may be empty.
            stop_times: Optional schedule data linking trips to stations.
            trips: Optional trips linking trip ids to routes.

        Returns:
            The result; on failure result.error holds the classified error.
        """
        monitor = PerformanceMonitor()
        now = self._clock()
        has_location = isinstance(user_location, Coordinates) and is_valid_coordinates(
            user_location
        )
        try:
            return self._process(
                user_location if has_location else None,
                stations,
                routes,
                vehicles,
                stop_times,
                trips,
                monitor,
                now,
            )
        except Exception as e:
            logger.error(f"Nearby view processing failed: {e}", exc_info=True)
            error = build_error(
                NearbyViewErrorKind.STATION_SELECTION_FAILED,
                f"Station selection failed: {e}",
                {"original_error": str(e), "error_type": type(e).__name__},
            )
            if has_location and user_location is not None:
                self._engine.record_failure(user_location, now)
            return self._error_result(error, user_location if has_location else None, monitor)

    def _process(
        self,
        user_location: Coordinates | None,
        stations: Sequence[Station],
        routes: Sequence[Route],
        vehicles: Sequence[LiveVehicle],
        stop_times: Sequence[StopTime] | None,
        trips: Sequence[Trip] | None,
        monitor: PerformanceMonitor,
        now: datetime,
    ) -> NearbyViewResult:
        options = self._options

        if user_location is None:
            logger.warning("Nearby view requested without a valid GPS location")
            return self._error_result(
                build_error(NearbyViewErrorKind.NO_GPS_LOCATION, "Valid GPS location is required"),
                None,
                monitor,
            )

        if not _is_collection(stations) or not stations:
            self._engine.record_failure(user_location, now)
            return self._error_result(
                build_error(
                    NearbyViewErrorKind.NO_STATIONS_IN_RANGE,
                    "No station data available",
                    {"stations_count": 0},
                ),
                user_location,
                monitor,
            )

        if not _is_collection(routes) or not routes:
            self._engine.record_failure(user_location, now)
            return self._error_result(
                build_error(
                    NearbyViewErrorKind.NO_ROUTES_AVAILABLE,
                    "No route data available",
                    {"routes_count": 0, "stations_count": len(stations)},
                ),
                user_location,
                monitor,
            )

        if not _is_collection(vehicles):
            vehicles = []
        if not vehicles:
            logger.warning("No live vehicle data; stations will be shown without vehicles")

        stop_time_index = build_stop_time_index(stop_times)

        if options.enable_stability_tracking:
            decision = self._engine.evaluate(user_location, now)
            previous = self._engine.context.previous_selection
            if decision.apply_override and previous is not None:
                return self._override_result(
                    user_location,
                    previous,
                    stations,
                    routes,
                    vehicles,
                    stop_time_index,
                    monitor,
                    now,
                )

        with monitor.phase("association"):
            index = self._filter.build_index(stations, routes, stop_times, trips, vehicles)
            candidates, unserviceable = self._filter.serviceable_stations(
                stations, index, options.require_active_routes
            )
        stats = index.statistics
        self._last_association_mode = index.mode
        self._last_stations_with_routes = stats.stations_with_routes

        if options.require_active_routes and not candidates:
            self._engine.record_failure(user_location, now)
            selection = SelectionResult(
                rejected_stations=tuple(StationSelector.reject_unserviceable(unserviceable))
            )
            return self._error_result(
                build_error(
                    NearbyViewErrorKind.NO_ROUTES_AVAILABLE,
                    "No stations have active route associations",
                    {
                        **stats.as_context(),
                        "association_mode": str(index.mode),
                        "limited_service": stats.total_stations > 0 and stats.total_routes > 0,
                        "rejection_breakdown": selection.rejection_breakdown(),
                    },
                ),
                user_location,
                monitor,
                selection=selection,
                association_mode=index.mode,
                stations_evaluated=len(stations),
            )

        with monitor.phase("selection"):
            outcome = self._selector.select(
                user_location,
                candidates,
                unserviceable,
                max_search_radius=options.max_search_radius,
                proximity_threshold=options.custom_distance_threshold,
                enable_second_station=options.enable_second_station,
            )
        selection = outcome.result

        if not outcome.found_station:
            self._engine.record_failure(user_location, now)
            return self._error_result(
                build_error(
                    NearbyViewErrorKind.NO_STATIONS_IN_RANGE,
                    f"No stations within {options.max_search_radius:.0f} m",
                    {
                        "rejection_breakdown": selection.rejection_breakdown(),
                        "search_radius": options.max_search_radius,
                        "stations_evaluated": len(stations),
                        "stations_with_routes": stats.stations_with_routes,
                    },
                ),
                user_location,
                monitor,
                selection=selection,
                association_mode=index.mode,
                stations_evaluated=len(stations),
            )

        groups, warnings = self._vehicle_groups(
            selection, vehicles, routes, stop_time_index, monitor
        )
        self._engine.record_selection(user_location, selection, now)

        elapsed = monitor.elapsed_ms()
        logger.info(
            f"Nearby view: {selection.closest_station.name if selection.closest_station else '-'}"
            f"{' + ' + selection.second_station.name if selection.second_station else ''} "
            f"({index.mode}, {elapsed:.1f}ms)"
        )
        return NearbyViewResult(
            selection=selection,
            station_vehicle_groups=groups,
            effective_location=user_location,
            threshold_used=options.custom_distance_threshold,
            association_mode=index.mode,
            metadata=SelectionMetadata(
                total_stations_evaluated=len(stations),
                stations_with_routes=stats.stations_with_routes,
                selection_time_ms=elapsed,
                stability_applied=False,
            ),
            performance=monitor.metrics(len(stations), len(vehicles)),
            warnings=warnings,
        )

    def _override_result(
        self,
        user_location: Coordinates,
        previous: SelectionResult,
        stations: Sequence[Station],
        routes: Sequence[Route],
        vehicles: Sequence[LiveVehicle],
        stop_time_index: dict[str, frozenset[str]],
        monitor: PerformanceMonitor,
        now: datetime,
    ) -> NearbyViewResult:
        groups, warnings = self._vehicle_groups(
            previous, vehicles, routes, stop_time_index, monitor
        )
        context = self._engine.record_override(user_location, now)
        logger.debug(
            f"Stability override applied ({context.consecutive_overrides} consecutive), "
            f"keeping {previous.station_ids}"
        )
        return NearbyViewResult(
            selection=previous,
            station_vehicle_groups=groups,
            effective_location=user_location,
            threshold_used=self._options.custom_distance_threshold,
            association_mode=self._last_association_mode,
            metadata=SelectionMetadata(
                total_stations_evaluated=len(stations),
                stations_with_routes=self._last_stations_with_routes,
                selection_time_ms=monitor.elapsed_ms(),
                stability_applied=True,
            ),
            performance=monitor.metrics(len(stations), len(vehicles)),
            warnings=warnings,
        )

    def _vehicle_groups(
        self,
        selection: SelectionResult,
        vehicles: Sequence[LiveVehicle],
        routes: Sequence[Route],
        stop_time_index: dict[str, frozenset[str]],
        monitor: PerformanceMonitor,
    ) -> tuple[tuple[StationVehicleGroup, ...], tuple[NearbyViewError, ...]]:
        routes_by_id = {route.id: route for route in routes}
        groups: list[StationVehicleGroup] = []
        warnings: list[NearbyViewError] = []

        with monitor.phase("vehicle_processing"):
            for station in selection.selected_stations:
                try:
                    group = self._associator.associate(
                        station,
                        vehicles,
                        routes_by_id,
                        stop_time_index,
                        self._options.max_vehicles_per_station,
                    )
                except Exception as e:
                    logger.warning(f"Vehicle processing failed for station {station.id}: {e}")
                    error = build_error(
                        NearbyViewErrorKind.VEHICLE_PROCESSING_FAILED,
                        f"Vehicle processing failed for {station.name}",
                        {"station_id": station.id, "original_error": str(e)},
                    )
                    warnings.append(error)
                    group = StationVehicleGroup(station=station, vehicle_error=error)
                groups.append(group)

        return tuple(groups), tuple(warnings)

    def _error_result(
        self,
        error: NearbyViewError,
        user_location: Coordinates | None,
        monitor: PerformanceMonitor,
        *,
        selection: SelectionResult | None = None,
        association_mode: AssociationMode | None = None,
        stations_evaluated: int = 0,
    ) -> NearbyViewResult:
        logger.debug(f"Nearby view error {error.kind}: {error.message}")
        return NearbyViewResult(
            selection=selection or SelectionResult(),
            effective_location=user_location,
            threshold_used=self._options.custom_distance_threshold,
            association_mode=association_mode,
            metadata=SelectionMetadata(
                total_stations_evaluated=stations_evaluated,
                selection_time_ms=monitor.elapsed_ms(),
            ),
            performance=monitor.metrics(stations_evaluated),
            error=error,
        )
