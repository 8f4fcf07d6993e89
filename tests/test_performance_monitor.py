"""Tests for the performance monitor."""

import logging

import pytest

from nearby_transit.application.services import PerformanceMonitor


class SteppingClock:
    """perf_counter stand-in that only moves when told to."""

    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_phases_are_timed_and_accumulated() -> None:
    """Given two association blocks and one selection block, then durations add up."""
    clock = SteppingClock()
    monitor = PerformanceMonitor(clock=clock)

    with monitor.phase("association"):
        clock.now += 0.005
    with monitor.phase("association"):
        clock.now += 0.010
    with monitor.phase("selection"):
        clock.now += 0.020

    metrics = monitor.metrics(stations_processed=300, vehicles_processed=40)

    assert metrics.association_ms == pytest.approx(15.0)
    assert metrics.selection_ms == pytest.approx(20.0)
    assert metrics.vehicle_processing_ms == 0.0
    assert metrics.total_ms == pytest.approx(35.0)
    assert metrics.stations_processed == 300
    assert metrics.vehicles_processed == 40
    assert metrics.warnings == ()


def test_phase_is_recorded_when_block_raises() -> None:
    """Given a failing block, then its time is still recorded."""
    clock = SteppingClock()
    monitor = PerformanceMonitor(clock=clock)

    with pytest.raises(RuntimeError):
        with monitor.phase("selection"):
            clock.now += 0.001
            raise RuntimeError("boom")

    assert monitor.metrics().selection_ms == pytest.approx(1.0)


def test_budget_overruns_are_warned(caplog: pytest.LogCaptureFixture) -> None:
    """Given a slow selection phase, then a warning names the phase and the total."""
    clock = SteppingClock()
    monitor = PerformanceMonitor(clock=clock)

    with monitor.phase("selection"):
        clock.now += 0.250

    with caplog.at_level(logging.WARNING):
        metrics = monitor.metrics()

    assert len(metrics.warnings) == 2
    assert metrics.warnings[0].startswith("selection took 250.0ms")
    assert metrics.warnings[1].startswith("total took 250.0ms")
    assert "Slow nearby view pass" in caplog.text
