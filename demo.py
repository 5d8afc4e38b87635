"""
Orrery Position Resolution Demonstration

This script demonstrates how body positions are resolved for the scene:
- Local orbital model positions for the whole catalog
- Live ephemeris positions scaled into render units (optional)
- Automatic fallback to the local model when the ephemeris is unreachable
- Nominal orbit placement for bodies without orbital elements

Usage:
    python demo.py [--provider {none,horizons,astronomyapi}] [--timestamp ISO] [--verbose]

Arguments:
    --provider: Ephemeris provider to try (default: none)
    --timestamp: Resolve at this UTC time instead of now
    --verbose: Enable debug logging
"""

import argparse
import logging
from datetime import datetime, timezone

from orrery_service.config import ServiceConfig
from orrery_service.ephemeris_client import HorizonsFetcher, build_fetcher
from orrery_service.logging_config import configure_logging, get_logger
from orrery_service.positions import ResolvedPositions
from orrery_service.service import PositionService

logger = get_logger(__name__)

UNREACHABLE_URL = "http://127.0.0.1:9/horizons.api"


def print_section(title):
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def print_positions(resolved: ResolvedPositions) -> None:
    print(f"\nTimestamp: {resolved.timestamp.isoformat()}  source: {resolved.source.value}")
    print(f"{'Body':<15} {'Tier':<10} {'x':>9} {'y':>9} {'z':>9} {'dist':>9}")
    print("-" * 66)
    for body_id in resolved.ids():
        pos = resolved[body_id]
        print(
            f"{body_id:<15} {resolved.tiers[body_id].value:<10} "
            f"{pos.x:9.2f} {pos.y:9.2f} {pos.z:9.2f} {pos.distance:9.2f}"
        )


def demo_simulated(timestamp: datetime) -> ResolvedPositions:
    """Resolve with the local orbital model only."""
    print_section("1. Local Orbital Model")
    resolved = PositionService().update(timestamp)
    print_positions(resolved)
    return resolved


def demo_fallback(timestamp: datetime, simulated: ResolvedPositions) -> None:
    """Resolve with an unreachable ephemeris and compare with the local model."""
    print_section("2. Fallback When the Ephemeris Is Unreachable")
    service = PositionService(fetcher=HorizonsFetcher(url=UNREACHABLE_URL, timeout=1.0))
    resolved = service.update(timestamp)

    print(f"\nFetch error: {service.last_fetch_error}")
    identical = all(
        resolved[body_id].as_tuple() == simulated[body_id].as_tuple()
        for body_id in simulated.ids()
    )
    print(f"Matches local model output: {'YES' if identical else 'NO'}")


def demo_live(timestamp: datetime, provider: str) -> None:
    """Resolve with the configured live provider."""
    print_section(f"3. Live Ephemeris ({provider})")
    config = ServiceConfig()
    config.EPHEMERIS_PROVIDER = provider
    fetcher = build_fetcher(config)
    if fetcher is None:
        print("\nProvider not available (check credentials); skipping.")
        return

    resolved = PositionService(fetcher=fetcher).update(timestamp)
    print_positions(resolved)


def main() -> None:
    """Main entry point for the demonstration."""
    parser = argparse.ArgumentParser(description="Orrery position resolution demonstration")
    parser.add_argument(
        "--provider", choices=["none", "horizons", "astronomyapi"], default="none",
        help="Ephemeris provider to try",
    )
    parser.add_argument("--timestamp", help="UTC time to resolve (ISO 8601)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING, json_logs=False)

    if args.timestamp:
        timestamp = datetime.fromisoformat(args.timestamp.replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
    else:
        timestamp = datetime.now(timezone.utc)

    logger.info("demo_started", timestamp=timestamp.isoformat(), provider=args.provider)

    simulated = demo_simulated(timestamp)
    demo_fallback(timestamp, simulated)
    if args.provider != "none":
        demo_live(timestamp, args.provider)


if __name__ == "__main__":
    main()
