"""Nearby station selection with GPS stability for live transit views."""

__version__ = "0.1.0"
