"""Per-pass timing of the nearby view phases."""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from nearby_transit.domain.models.nearby_view_result import PerformanceMetrics

logger = logging.getLogger(__name__)

# Budgets in milliseconds for typical datasets (hundreds of stations/vehicles)
PHASE_BUDGETS_MS = {
    "association": 30.0,
    "selection": 100.0,
    "vehicle_processing": 50.0,
}
TOTAL_BUDGET_MS = 200.0


class PerformanceMonitor:
    """Collects phase durations for one processing pass."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._started = clock()
        self._phases: dict[str, float] = {}

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        """Time a block; repeated phases accumulate."""
        start = self._clock()
        try:
            yield
        finally:
            elapsed = (self._clock() - start) * 1000
            self._phases[name] = self._phases.get(name, 0.0) + elapsed

    def elapsed_ms(self) -> float:
        return (self._clock() - self._started) * 1000

    def metrics(
        self, stations_processed: int = 0, vehicles_processed: int = 0
    ) -> PerformanceMetrics:
        total = self.elapsed_ms()
        warnings = [
            f"{name} took {self._phases[name]:.1f}ms (budget {budget:.0f}ms)"
            for name, budget in PHASE_BUDGETS_MS.items()
            if self._phases.get(name, 0.0) > budget
        ]
        if total > TOTAL_BUDGET_MS:
            warnings.append(f"total took {total:.1f}ms (budget {TOTAL_BUDGET_MS:.0f}ms)")
        for warning in warnings:
            logger.warning(f"Slow nearby view pass: {warning}")

        return PerformanceMetrics(
            total_ms=total,
            association_ms=self._phases.get("association", 0.0),
            selection_ms=self._phases.get("selection", 0.0),
            vehicle_processing_ms=self._phases.get("vehicle_processing", 0.0),
            stations_processed=stations_processed,
            vehicles_processed=vehicles_processed,
            warnings=tuple(warnings),
        )
