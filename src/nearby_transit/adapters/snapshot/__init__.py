"""Snapshot file adapters."""

from nearby_transit.adapters.snapshot.json_snapshot_repository import JsonSnapshotRepository

__all__ = ["JsonSnapshotRepository"]
