"""Tests for the JSON snapshot repository."""

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from nearby_transit.adapters.snapshot import JsonSnapshotRepository

SNAPSHOT = {
    "fetched_at": "2024-05-01T08:00:00Z",
    "stops": [
        {"stop_id": 101, "stop_name": "Piata Unirii", "stop_lat": 46.7713, "stop_lon": 23.6236}
    ],
    "routes": [{"route_id": 24, "route_short_name": "24", "route_type": 3}],
    "trips": [{"trip_id": "T1", "route_id": 24}],
    "stop_times": [{"trip_id": "T1", "stop_id": 101, "stop_sequence": 1}],
    "vehicles": [
        {
            "id": "V1",
            "latitude": 46.77,
            "longitude": 23.62,
            "timestamp": "2024-05-01T07:59:00Z",
            "route_id": 24,
            "trip_id": "T1",
        }
    ],
}


def _write(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.mark.asyncio
async def test_loads_full_snapshot(tmp_path: Path) -> None:
    """Given a complete snapshot file, when loading, then all collections are parsed."""
    repository = JsonSnapshotRepository(_write(tmp_path, SNAPSHOT))

    snapshot = await repository.get_snapshot()

    assert [s.id for s in snapshot.stations] == ["101"]
    assert [r.id for r in snapshot.routes] == ["24"]
    assert snapshot.trips is not None and len(snapshot.trips) == 1
    assert snapshot.stop_times is not None and len(snapshot.stop_times) == 1
    assert [v.id for v in snapshot.vehicles] == ["V1"]
    assert snapshot.fetched_at == datetime(2024, 5, 1, 8, 0, tzinfo=UTC)
    assert snapshot.is_stale
    assert snapshot.warnings == []


@pytest.mark.asyncio
async def test_missing_schedule_keys_give_none(tmp_path: Path) -> None:
    """Given a snapshot without trips and stop times, then both are None with a warning."""
    data = {k: v for k, v in SNAPSHOT.items() if k not in ("trips", "stop_times", "fetched_at")}
    repository = JsonSnapshotRepository(_write(tmp_path, data))

    snapshot = await repository.get_snapshot()

    assert snapshot.trips is None
    assert snapshot.stop_times is None
    assert snapshot.fetched_at is not None
    assert len(snapshot.warnings) == 1


@pytest.mark.asyncio
async def test_missing_trips_with_vehicle_linkage_has_no_warning(tmp_path: Path) -> None:
    """Given stop times and linked vehicles but no trips, then no fallback warning is added."""
    data = {k: v for k, v in SNAPSHOT.items() if k != "trips"}
    repository = JsonSnapshotRepository(_write(tmp_path, data))

    snapshot = await repository.get_snapshot()

    assert snapshot.trips is None
    assert snapshot.stop_times is not None
    assert not snapshot.needs_route_fallback
    assert snapshot.warnings == []


@pytest.mark.asyncio
async def test_missing_file_raises(tmp_path: Path) -> None:
    """Given a path that does not exist, when loading, then FileNotFoundError is raised."""
    repository = JsonSnapshotRepository(tmp_path / "missing.json")

    with pytest.raises(FileNotFoundError, match="Snapshot file not found"):
        await repository.get_stations()


@pytest.mark.asyncio
async def test_non_object_file_raises(tmp_path: Path) -> None:
    """Given a JSON list instead of an object, when loading, then ValueError is raised."""
    repository = JsonSnapshotRepository(_write(tmp_path, [1, 2, 3]))

    with pytest.raises(ValueError, match="must contain a JSON object"):
        await repository.get_routes()


@pytest.mark.asyncio
async def test_reload_picks_up_changes(tmp_path: Path) -> None:
    """Given a changed file, when reloading, then the new content is served."""
    path = _write(tmp_path, SNAPSHOT)
    repository = JsonSnapshotRepository(path)
    assert len(await repository.get_vehicles()) == 1

    _write(tmp_path, {**SNAPSHOT, "vehicles": []})
    assert len(await repository.get_vehicles()) == 1

    repository.reload()
    assert await repository.get_vehicles() == []
