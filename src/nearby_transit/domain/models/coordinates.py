"""Coordinates domain model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Coordinates:
    """A WGS84 position in decimal degrees.

    Range checks are not performed here; geometry functions reject
    non-finite or out-of-range values before using them.
    """

    latitude: float
    longitude: float
