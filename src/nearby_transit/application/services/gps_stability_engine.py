"""GPS stability engine.

Keeps the displayed stations steady while GPS noise jitters the user's
position, and lets go of them as soon as the user genuinely moves.

State machine:
    NO_SELECTION -> STABLE_SELECTION on the first successful selection.
    STABLE_SELECTION -> OVERRIDE_ACTIVE when a fix is close to the previous
        one, the previous selection is still valid, the override cap is not
        reached and the stability score is above the mode cutoff.
    OVERRIDE_ACTIVE -> OVERRIDE_ACTIVE while that holds, counting overrides.
    any -> STABLE_SELECTION (counter reset) on every fresh selection.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from nearby_transit.domain.geometry import distance, is_significant_change
from nearby_transit.domain.models.coordinates import Coordinates
from nearby_transit.domain.models.selection_result import SelectionResult
from nearby_transit.domain.models.stability import (
    LOCATION_HISTORY_LIMIT,
    NEUTRAL_STABILITY_SCORE,
    STABILITY_SCORE_WINDOW,
    STATION_STABILITY_THRESHOLD,
    LocationHistoryEntry,
    StabilityContext,
    StabilityDecision,
    StabilityMetrics,
    StabilityMode,
    StabilityProfile,
    StabilityState,
)

logger = logging.getLogger(__name__)

# A selection counts as stable when the score is above this and fewer than
# this share of the override cap has been used.
STABLE_SCORE_THRESHOLD = 0.6
STABLE_OVERRIDE_RATIO = 0.8


def _utc_now() -> datetime:
    return datetime.now(UTC)


def calculate_stability_score(
    history: Sequence[LocationHistoryEntry], profile: StabilityProfile
) -> float:
    """Score in [0, 1] of how steady recent fixes and selections have been.

    Uses the last STABILITY_SCORE_WINDOW entries. Movement is the mean distance
    between consecutive fixes relative to the mode threshold; change rate is
    the share of those transitions that changed the selection. Fewer than two
    entries give the neutral score.
    """
    recent = list(history)[-STABILITY_SCORE_WINDOW:]
    if len(recent) < 2:
        return NEUTRAL_STABILITY_SCORE

    transitions = list(zip(recent, recent[1:], strict=False))
    mean_movement = sum(distance(a.location, b.location) for a, b in transitions) / len(
        transitions
    )
    change_rate = sum(1 for _, b in transitions if b.selection_changed) / len(transitions)

    movement_score = max(0.0, 1.0 - mean_movement / profile.distance_threshold)
    change_score = max(0.0, 1.0 - 2.0 * change_rate)
    score = profile.movement_weight * movement_score + profile.change_weight * change_score
    return min(1.0, max(0.0, score))


class GpsStabilityEngine:
    """Holds the stability context of one controller and decides on overrides.

    The context is an immutable value replaced on every step; callers must
    serialize calls on one engine.
    """

    def __init__(
        self,
        mode: StabilityMode | str = StabilityMode.NORMAL,
        base_threshold: float = STATION_STABILITY_THRESHOLD,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._profile = StabilityProfile.for_mode(mode, base_threshold)
        self._clock = clock or _utc_now
        self._context = StabilityContext()

    @property
    def profile(self) -> StabilityProfile:
        return self._profile

    @property
    def context(self) -> StabilityContext:
        return self._context

    def configure(self, mode: StabilityMode | str, base_threshold: float) -> None:
        """Switch stability mode, keeping the current context."""
        self._profile = StabilityProfile.for_mode(mode, base_threshold)
        logger.debug(
            f"Stability mode set to {self._profile.mode}: "
            f"threshold={self._profile.distance_threshold:.0f} m, "
            f"window={self._profile.validity_window.total_seconds():.0f} s, "
            f"max overrides={self._profile.max_consecutive_overrides}"
        )

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else self._clock()

    def evaluate(self, location: Coordinates, now: datetime | None = None) -> StabilityDecision:
        """Decide whether the previous selection should be reused for this fix.

        Does not change the context. The score covers the history plus this
        fix, assuming the selection stays unchanged.
        """
        now = self._now(now)
        ctx = self._context
        profile = self._profile

        if not ctx.has_selection or ctx.previous_location is None:
            return StabilityDecision(
                apply_override=False,
                reason="no_previous_selection",
                stability_score=ctx.stability_score,
                significant_change=True,
                selection_age=None,
            )

        selection_age = now - ctx.last_selection_time if ctx.last_selection_time else None
        significant = is_significant_change(
            ctx.previous_location, location, profile.distance_threshold
        )
        candidate = (*ctx.location_history, LocationHistoryEntry(location, now, False))
        score = calculate_stability_score(candidate, profile)

        if significant:
            reason = "significant_movement"
        elif selection_age is None or selection_age > profile.validity_window:
            reason = "selection_expired"
        elif ctx.consecutive_overrides >= profile.max_consecutive_overrides:
            reason = "override_cap_reached"
        elif score <= profile.score_cutoff:
            reason = "low_stability_score"
        else:
            reason = "stable_location"

        decision = StabilityDecision(
            apply_override=reason == "stable_location",
            reason=reason,
            stability_score=score,
            significant_change=significant,
            selection_age=selection_age,
        )
        logger.debug(
            f"Stability evaluation: override={decision.apply_override} ({reason}), "
            f"score={score:.2f}, overrides={ctx.consecutive_overrides}/"
            f"{profile.max_consecutive_overrides}"
        )
        return decision

    def _append_history(
        self, location: Coordinates, now: datetime, selection_changed: bool
    ) -> tuple[LocationHistoryEntry, ...]:
        entry = LocationHistoryEntry(location, now, selection_changed)
        return (*self._context.location_history, entry)[-LOCATION_HISTORY_LIMIT:]

    def record_override(
        self, location: Coordinates, now: datetime | None = None
    ) -> StabilityContext:
        """Record that the previous selection was reused for this fix."""
        now = self._now(now)
        history = self._append_history(location, now, selection_changed=False)
        self._context = replace(
            self._context,
            previous_location=location,
            consecutive_overrides=self._context.consecutive_overrides + 1,
            stability_score=calculate_stability_score(history, self._profile),
            location_history=history,
            state=StabilityState.OVERRIDE_ACTIVE,
        )
        return self._context

    def record_selection(
        self, location: Coordinates, selection: SelectionResult, now: datetime | None = None
    ) -> StabilityContext:
        """Record a freshly computed selection; resets the override counter."""
        now = self._now(now)
        previous = self._context.previous_selection
        changed = previous is None or previous.station_ids != selection.station_ids
        history = self._append_history(location, now, selection_changed=changed)
        self._context = replace(
            self._context,
            previous_location=location,
            previous_selection=selection,
            last_selection_time=now,
            consecutive_overrides=0,
            stability_score=calculate_stability_score(history, self._profile),
            location_history=history,
            state=StabilityState.STABLE_SELECTION,
        )
        if changed:
            logger.debug(f"Selection changed to {selection.station_ids}")
        return self._context

    def record_failure(
        self, location: Coordinates, now: datetime | None = None
    ) -> StabilityContext:
        """Record a fix whose pass ended in an error; the last selection is dropped."""
        now = self._now(now)
        had_selection = self._context.previous_selection is not None
        history = self._append_history(location, now, selection_changed=had_selection)
        self._context = replace(
            self._context,
            previous_location=location,
            previous_selection=None,
            last_selection_time=None,
            consecutive_overrides=0,
            stability_score=calculate_stability_score(history, self._profile),
            location_history=history,
            state=StabilityState.NO_SELECTION,
        )
        if had_selection:
            logger.debug("Selection cleared after a failed pass")
        return self._context

    def force_new_selection(self) -> None:
        """Make the next evaluation compute a fresh selection."""
        self._context = replace(
            self._context, consecutive_overrides=self._profile.max_consecutive_overrides
        )
        logger.debug("Forced fresh selection on next evaluation")

    def reset(self) -> None:
        """Drop history, score and counters."""
        self._context = StabilityContext()
        logger.debug("Stability context reset")

    def is_selection_stable(self, now: datetime | None = None) -> bool:
        """Whether the current selection is still valid, steady and not overused."""
        ctx = self._context
        if not ctx.has_selection or ctx.last_selection_time is None:
            return False
        age = self._now(now) - ctx.last_selection_time
        return (
            age <= self._profile.validity_window
            and ctx.stability_score > STABLE_SCORE_THRESHOLD
            and ctx.consecutive_overrides
            < self._profile.max_consecutive_overrides * STABLE_OVERRIDE_RATIO
        )

    def metrics(self, now: datetime | None = None) -> StabilityMetrics:
        ctx = self._context
        age: timedelta | None = None
        if ctx.last_selection_time is not None:
            age = self._now(now) - ctx.last_selection_time
        return StabilityMetrics(
            stability_score=ctx.stability_score,
            consecutive_overrides=ctx.consecutive_overrides,
            max_consecutive_overrides=self._profile.max_consecutive_overrides,
            location_history_length=len(ctx.location_history),
            last_selection_age=age,
            is_stable=self.is_selection_stable(now),
            state=ctx.state,
        )
