"""Configuration adapters."""

from nearby_transit.adapters.config.app_config import AppConfig

__all__ = ["AppConfig"]
