"""Contracts between application services."""

from nearby_transit.domain.contracts.association_cache import AssociationCacheProtocol

__all__ = ["AssociationCacheProtocol"]
