"""GPS stability domain models."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.selection_result import SelectionResult

STATION_STABILITY_THRESHOLD = 50.0  # meters, base for the per-mode distance thresholds
LOCATION_HISTORY_LIMIT = 10
STABILITY_SCORE_WINDOW = 5
NEUTRAL_STABILITY_SCORE = 0.5


class StabilityMode(StrEnum):
    """How eagerly the previous selection is kept on small movements."""

    STRICT = "strict"
    NORMAL = "normal"
    FLEXIBLE = "flexible"


class StabilityState(StrEnum):
    """State of the stability state machine."""

    NO_SELECTION = "no_selection"
    STABLE_SELECTION = "stable_selection"
    OVERRIDE_ACTIVE = "override_active"


@dataclass(frozen=True)
class StabilityProfile:
    """Tunable constants for one stability mode."""

    mode: StabilityMode
    distance_threshold: float  # meters; movement above this is significant
    validity_window: timedelta
    max_consecutive_overrides: int
    score_cutoff: float  # override requires score strictly above this
    movement_weight: float = 0.5
    change_weight: float = 0.5

    @classmethod
    def for_mode(
        cls, mode: StabilityMode | str, base_threshold: float = STATION_STABILITY_THRESHOLD
    ) -> "StabilityProfile":
        """Build the profile for a mode.

        strict: 0.5x base, 60 s, 10 overrides, score > 0.7
        normal: 1x base, 30 s, 5 overrides, score > 0.5
        flexible: 2x base, 15 s, 3 overrides, score > 0.3
        """
        mode = StabilityMode(mode)
        if mode is StabilityMode.STRICT:
            return cls(mode, base_threshold * 0.5, timedelta(seconds=60), 10, 0.7)
        if mode is StabilityMode.FLEXIBLE:
            return cls(mode, base_threshold * 2, timedelta(seconds=15), 3, 0.3)
        return cls(mode, base_threshold, timedelta(seconds=30), 5, 0.5)


@dataclass(frozen=True)
class LocationHistoryEntry:
    """One processed location fix."""

    location: Coordinates
    timestamp: datetime
    selection_changed: bool


@dataclass(frozen=True)
class StabilityContext:
    """Snapshot of the stability engine state.

    Rebuilt on every step; never mutated in place and never persisted.
    """

    previous_location: Coordinates | None = None
    previous_selection: SelectionResult | None = None
    last_selection_time: datetime | None = None
    consecutive_overrides: int = 0
    stability_score: float = NEUTRAL_STABILITY_SCORE
    location_history: tuple[LocationHistoryEntry, ...] = field(default_factory=tuple)
    state: StabilityState = StabilityState.NO_SELECTION

    @property
    def has_selection(self) -> bool:
        return self.previous_selection is not None and self.previous_selection.has_selection


@dataclass(frozen=True)
class StabilityDecision:
    """Result of evaluating a new fix against the stability context."""

    apply_override: bool
    reason: str  # Short machine-readable reason, e.g. "significant_movement"
    stability_score: float
    significant_change: bool
    selection_age: timedelta | None


@dataclass(frozen=True)
class StabilityMetrics:
    """Stability figures for debugging and monitoring."""

    stability_score: float
    consecutive_overrides: int
    max_consecutive_overrides: int
    location_history_length: int
    last_selection_age: timedelta | None
    is_stable: bool
    state: StabilityState
