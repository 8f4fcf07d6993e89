"""Protocol for route association caching."""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from nearby_transit.domain.models.route_association import RouteAssociationIndex


class AssociationCacheProtocol(Protocol):
    """Protocol for caching association indexes by data fingerprint."""

    def get(self, fingerprint: str) -> "RouteAssociationIndex | None":
        """Get a cached index.

        Args:
            fingerprint: Content fingerprint of the input data.

        Returns:
            The cached index, or None if absent or expired.
        """
        ...

    def set(self, fingerprint: str, index: "RouteAssociationIndex") -> None:
        """Store an index under a fingerprint."""
        ...

    def invalidate(self) -> None:
        """Make every stored entry unreachable."""
        ...

    def clear(self) -> None:
        """Drop all entries."""
        ...
