"""Ports (interfaces) for the ports-and-adapters architecture."""

from nearby_transit.domain.ports.transit_data_repository import TransitDataRepository

__all__ = ["TransitDataRepository"]
