"""Tranzy open data API adapters."""

from nearby_transit.adapters.tranzy_api.entity_parser import TranzyEntityParser
from nearby_transit.adapters.tranzy_api.tranzy_transit_repository import TranzyTransitRepository

__all__ = ["TranzyEntityParser", "TranzyTransitRepository"]
