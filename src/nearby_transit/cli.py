"""Command line interface for nearby transit."""

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime, timedelta
from typing import Any

import aiohttp
from pydantic import ValidationError

from nearby_transit.adapters.config import AppConfig
from nearby_transit.adapters.snapshot import JsonSnapshotRepository
from nearby_transit.adapters.tranzy_api import TranzyTransitRepository
from nearby_transit.application.services import (
    NearbyViewController,
    RetryTracker,
    build_error,
    classify_error,
    error_from_exception,
)
from nearby_transit.domain.models import (
    Coordinates,
    ErrorContext,
    NearbyViewError,
    NearbyViewErrorKind,
    NearbyViewResult,
    StabilityMode,
    TransitSnapshot,
)
from nearby_transit.domain.ports import TransitDataRepository

logger = logging.getLogger(__name__)

DATA_LOADING_RETRY_KEY = "data_loading"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def parse_fix(value: str) -> Coordinates:
    """Parse a "LAT,LON" argument."""
    try:
        lat_str, lon_str = value.split(",")
        return Coordinates(latitude=float(lat_str), longitude=float(lon_str))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected LAT,LON but got '{value}'") from e


def load_config(args: argparse.Namespace) -> AppConfig:
    """Build configuration from env, .env, the TOML file and command line flags.

    Raises:
        pydantic.ValidationError: If a value is invalid.
        FileNotFoundError: If the configured TOML file is missing.
    """
    config = AppConfig()
    if getattr(args, "config", None):
        config.config_file = args.config
    config.load_toml()
    if getattr(args, "mode", None):
        config.stability_mode = args.mode
    if getattr(args, "radius", None) is not None:
        config.max_search_radius = args.radius
    return config


async def _fetch_snapshot(repository: TransitDataRepository, retries: int) -> TransitSnapshot:
    """Fetch a snapshot, retrying data loading failures with backoff."""
    tracker = RetryTracker(max_retries=retries)
    while True:
        try:
            snapshot = await repository.get_snapshot()
        except (aiohttp.ClientError, TimeoutError) as e:
            error = error_from_exception(e)
            if not tracker.should_retry(DATA_LOADING_RETRY_KEY, error):
                raise
            delay = tracker.next_delay(DATA_LOADING_RETRY_KEY, error)
            attempt = tracker.record_failure(DATA_LOADING_RETRY_KEY)
            logger.warning(f"Data loading failed ({e}), retry {attempt}/{retries} in {delay:.0f}s")
            await asyncio.sleep(delay)
            continue
        tracker.record_success(DATA_LOADING_RETRY_KEY)
        return snapshot


async def load_snapshot(
    config: AppConfig, snapshot_path: str | None, retries: int = 0
) -> TransitSnapshot:
    """Load transit data from a snapshot file or the Tranzy API.

    Raises:
        ValueError: If no snapshot is given and API credentials are missing.
    """
    if snapshot_path:
        return await _fetch_snapshot(JsonSnapshotRepository(snapshot_path), retries)

    if not config.has_api_credentials:
        raise ValueError(
            "Tranzy API credentials missing: set TRANZY_API_KEY and TRANZY_AGENCY_ID "
            "or pass --snapshot"
        )
    async with aiohttp.ClientSession() as session:
        repository = TranzyTransitRepository(
            session,
            api_key=config.tranzy_api_key or "",
            agency_id=config.tranzy_agency_id or "",
            base_url=config.tranzy_base_url,
            timeout_seconds=config.api_timeout,
        )
        return await _fetch_snapshot(repository, retries)


def _error_context(
    config: AppConfig | None,
    snapshot: TransitSnapshot | None,
    location: Coordinates | None,
) -> ErrorContext:
    return ErrorContext(
        user_location=location,
        stations_available=len(snapshot.stations) if snapshot else 0,
        routes_available=len(snapshot.routes) if snapshot else 0,
        vehicles_available=len(snapshot.vehicles) if snapshot else 0,
        has_gtfs_data=bool(snapshot and snapshot.stop_times and snapshot.trips),
        has_configured_location=bool(config and config.default_location()),
        search_radius=config.max_search_radius if config else None,
        timestamp=datetime.now(UTC),
    )


def error_to_dict(error: NearbyViewError, context: ErrorContext) -> dict[str, Any]:
    plan = classify_error(error, context)
    return {
        "kind": str(error.kind),
        "message": error.message,
        "retryable": error.retryable,
        "fallback_action": str(error.fallback_action),
        "context": error.context,
        "severity": str(plan.severity),
        "strategy": str(plan.strategy),
        "user_message": plan.user_message,
        "user_actions": plan.user_actions,
        "retry_delay_seconds": plan.retry_delay_seconds,
    }


def result_to_dict(result: NearbyViewResult, context: ErrorContext) -> dict[str, Any]:
    """JSON-friendly view of a result."""
    stations = []
    for group in result.station_vehicle_groups:
        stations.append(
            {
                "id": group.station.id,
                "name": group.station.name,
                "distance_m": round(group.distance, 1),
                "routes": [
                    {"id": r.route_id, "name": r.route_name, "vehicles": r.vehicle_count}
                    for r in group.all_routes
                ],
                "vehicles": [
                    {
                        "id": v.id,
                        "route": v.route_name,
                        "label": v.vehicle.label,
                        "latitude": v.vehicle.position.latitude,
                        "longitude": v.vehicle.position.longitude,
                    }
                    for v in group.vehicles
                ],
                "vehicle_error": group.vehicle_error.message if group.vehicle_error else None,
            }
        )
    return {
        "success": result.is_success,
        "stations": stations,
        "association_mode": str(result.association_mode) if result.association_mode else None,
        "threshold_m": result.threshold_used,
        "stability_applied": result.metadata.stability_applied,
        "stations_evaluated": result.metadata.total_stations_evaluated,
        "stations_with_routes": result.metadata.stations_with_routes,
        "selection_time_ms": round(result.metadata.selection_time_ms, 2),
        "rejections": result.selection.rejection_breakdown(),
        "warnings": [w.message for w in result.warnings],
        "error": error_to_dict(result.error, context) if result.error else None,
    }


def format_result(result: NearbyViewResult, context: ErrorContext) -> str:
    """Human readable view of a result."""
    lines: list[str] = []
    if result.error:
        plan = classify_error(result.error, context)
        lines.append(f"Error ({result.error.kind}): {plan.user_message}")
        for action in plan.user_actions:
            lines.append(f"  - {action}")
        return "\n".join(lines)

    for group in result.station_vehicle_groups:
        lines.append(f"{group.station.name} ({group.station.id}) - {group.distance:.0f} m")
        if group.vehicle_error:
            lines.append(f"  ! {group.vehicle_error.message}")
        for summary in group.all_routes:
            lines.append(f"  Route {summary.route_name}: {summary.vehicle_count} live")
        for vehicle in group.vehicles:
            label = f" [{vehicle.vehicle.label}]" if vehicle.vehicle.label else ""
            lines.append(f"    {vehicle.route_name} {vehicle.route_description}{label}".rstrip())
    lines.append(
        f"({result.association_mode}, {result.metadata.total_stations_evaluated} stations, "
        f"{result.metadata.selection_time_ms:.1f} ms"
        + (", stabilized" if result.metadata.stability_applied else "")
        + ")"
    )
    return "\n".join(lines)


def _print_failure(error: NearbyViewError, context: ErrorContext, as_json: bool) -> None:
    if as_json:
        payload = {"success": False, "error": error_to_dict(error, context)}
        print(json.dumps(payload, indent=2, default=str))
        return
    plan = classify_error(error, context)
    print(f"Error ({error.kind}): {plan.user_message}", file=sys.stderr)
    for action in plan.user_actions:
        print(f"  - {action}", file=sys.stderr)


def _controller(config: AppConfig, **kwargs: Any) -> NearbyViewController:
    return NearbyViewController(config.to_nearby_view_options(), **kwargs)


async def run_nearby(args: argparse.Namespace, config: AppConfig) -> int:
    """Run one nearby view pass and print it."""
    location = None
    if args.lat is not None and args.lon is not None:
        location = Coordinates(latitude=args.lat, longitude=args.lon)
    elif config.default_location() is not None:
        location = config.default_location()
        logger.info(f"No location given, using configured default {location}")

    try:
        snapshot = await load_snapshot(config, args.snapshot, args.retries)
    except (aiohttp.ClientError, TimeoutError) as e:
        _print_failure(error_from_exception(e), _error_context(config, None, location), args.json)
        return 1
    except (ValueError, FileNotFoundError) as e:
        error = build_error(NearbyViewErrorKind.CONFIGURATION_ERROR, str(e))
        _print_failure(error, _error_context(config, None, location), args.json)
        return 1

    for warning in snapshot.warnings:
        logger.warning(warning)

    controller = _controller(config)
    result = controller.process_nearby_view(
        location,
        snapshot.stations,
        snapshot.routes,
        snapshot.vehicles,
        snapshot.stop_times,
        snapshot.trips,
    )
    context = _error_context(config, snapshot, location)
    if args.json:
        payload = result_to_dict(result, context)
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
    else:
        print(format_result(result, context))
    return 0 if result.is_success else 1


async def run_track(args: argparse.Namespace, config: AppConfig) -> int:
    """Replay a sequence of fixes through one controller to show stability behaviour."""
    try:
        snapshot = await load_snapshot(config, args.snapshot)
    except (aiohttp.ClientError, TimeoutError) as e:
        _print_failure(error_from_exception(e), _error_context(config, None, None), args.json)
        return 1
    except (ValueError, FileNotFoundError) as e:
        error = build_error(NearbyViewErrorKind.CONFIGURATION_ERROR, str(e))
        _print_failure(error, _error_context(config, None, None), args.json)
        return 1

    start = snapshot.fetched_at or datetime.now(UTC)
    current = {"now": start}
    controller = _controller(config, clock=lambda: current["now"])

    rows: list[dict[str, Any]] = []
    failed = False
    for i, fix in enumerate(args.fix):
        current["now"] = start + timedelta(seconds=args.interval * i)
        result = controller.process_nearby_view(
            fix,
            snapshot.stations,
            snapshot.routes,
            snapshot.vehicles,
            snapshot.stop_times,
            snapshot.trips,
        )
        metrics = controller.stability_metrics()
        selection = result.selection
        row = {
            "fix": i + 1,
            "latitude": fix.latitude,
            "longitude": fix.longitude,
            "closest": selection.closest_station.name if selection.closest_station else None,
            "second": selection.second_station.name if selection.second_station else None,
            "stability_applied": result.metadata.stability_applied,
            "score": round(metrics.stability_score, 3),
            "overrides": metrics.consecutive_overrides,
            "state": str(metrics.state),
            "error": str(result.error.kind) if result.error else None,
        }
        failed = failed or result.error is not None
        rows.append(row)

    if args.json:
        print(json.dumps(rows, indent=2, ensure_ascii=False, default=str))
    else:
        for row in rows:
            stations = row["error"] or " + ".join(s for s in (row["closest"], row["second"]) if s)
            flag = "*" if row["stability_applied"] else " "
            print(
                f"{row['fix']:>3} {flag} ({row['latitude']:.5f}, {row['longitude']:.5f}) "
                f"{stations}  score={row['score']:.2f} overrides={row['overrides']} {row['state']}"
            )
    return 1 if failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nearby-transit",
        description="Nearby transit stations with live vehicles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Nearest stations from the live Tranzy API (TRANZY_API_KEY, TRANZY_AGENCY_ID)
  nearby-transit nearby --lat 46.7712 --lon 23.6236

  # Same from an offline snapshot, as JSON
  nearby-transit nearby --lat 46.7712 --lon 23.6236 --snapshot snapshot.json --json

  # Replay GPS fixes to see stabilization
  nearby-transit track --snapshot snapshot.json --fix 46.7712,23.6236 --fix 46.7713,23.6237
        """,
    )
    parser.add_argument("--config", help="Path to TOML configuration file")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--snapshot", help="Read transit data from a JSON snapshot file")
        sub.add_argument("--json", action="store_true", help="Output as JSON")
        sub.add_argument(
            "--mode", choices=[m.value for m in StabilityMode], help="GPS stability mode"
        )
        sub.add_argument("--radius", type=float, help="Search radius in meters")

    nearby_parser = subparsers.add_parser("nearby", help="Show nearby stations and vehicles")
    nearby_parser.add_argument("--lat", type=float, help="Latitude of the user")
    nearby_parser.add_argument("--lon", type=float, help="Longitude of the user")
    nearby_parser.add_argument(
        "--retries", type=int, default=0, help="Retries with backoff when data loading fails"
    )
    add_common(nearby_parser)

    track_parser = subparsers.add_parser("track", help="Replay a sequence of GPS fixes")
    track_parser.add_argument(
        "--fix",
        type=parse_fix,
        action="append",
        required=True,
        help="GPS fix as LAT,LON; repeat for a sequence",
    )
    track_parser.add_argument(
        "--interval", type=float, default=5.0, help="Seconds between fixes (default: 5)"
    )
    add_common(track_parser)
    return parser


async def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args)
    except (ValidationError, ValueError, FileNotFoundError) as e:
        configure_logging()
        error = build_error(NearbyViewErrorKind.CONFIGURATION_ERROR, str(e))
        _print_failure(error, ErrorContext(), getattr(args, "json", False))
        return 1

    configure_logging(config.log_level)
    logger.debug(f"Options: {config.to_nearby_view_options()}")

    try:
        if args.command == "nearby":
            return await run_nearby(args, config)
        return await run_track(args, config)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 1


def cli_main() -> None:
    """Synchronous entry point for the CLI command."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli_main()
