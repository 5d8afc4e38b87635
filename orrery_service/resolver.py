"""
Position Resolver

Produces a complete render-space position map for every catalog body at a given
time, choosing per body between three tiers:

1. Observed: an entry from a recent ephemeris snapshot, scaled to render units
2. Simulated: the local orbital model
3. Nominal: a stable pseudo-random spot on the nominal orbit

The resolver is a pure function of (timestamp, catalog, snapshot). It never
raises because of missing or bad external data; those bodies simply drop to the
next tier. The star is always pinned at the origin.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from orrery_service.catalog import DEFAULT_CATALOG, Catalog, CelestialBody
from orrery_service.config import OBSERVATION_MAX_AGE_S
from orrery_service.exceptions import OrbitModelError
from orrery_service.orbital_model import (
    Vector,
    nominal_orbit_position,
    scale_to_render_units,
    simulate_position,
    vector_length,
)
from orrery_service.positions import (
    ObservedSnapshot,
    Position,
    PositionSource,
    ResolutionTier,
    ResolvedPositions,
)

logger = logging.getLogger(__name__)

ORIGIN: Vector = (0.0, 0.0, 0.0)


class PositionResolver:
    """
    Resolve positions for every body of a catalog.

    Args:
        catalog: Immutable body catalog (default: built-in solar system)
        max_observation_age: Maximum age in seconds of a snapshot that is still
            trusted as confirming the provider is reachable
    """

    def __init__(self, catalog: Catalog = DEFAULT_CATALOG,
                 max_observation_age: float = OBSERVATION_MAX_AGE_S):
        self.catalog = catalog
        self.max_observation_age = max_observation_age

    def resolve(self, timestamp: Optional[datetime] = None,
                observed: Optional[ObservedSnapshot] = None) -> ResolvedPositions:
        """
        Resolve every catalog body for a timestamp.

        Args:
            timestamp: Target time (default: now, UTC)
            observed: Latest ephemeris snapshot, or None when the fetch failed

        Returns:
            ResolvedPositions covering every catalog body, moons included
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        elif timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        snapshot = observed if self.is_fresh(observed, timestamp) else None
        if observed is not None and snapshot is None:
            logger.info(
                f"Ignoring stale {observed.provider} snapshot "
                f"({observed.age_seconds(timestamp):.0f}s old)"
            )

        positions: Dict[str, Position] = {}
        tiers: Dict[str, ResolutionTier] = {}

        for body in self.catalog:
            vector, tier = self._resolve_body(body, timestamp, snapshot)
            positions[body.id] = self._make_position(vector, timestamp, tier)
            tiers[body.id] = tier

            for moon in body.moons:
                offset, moon_tier = self._resolve_local(moon, timestamp)
                absolute = tuple(p + o for p, o in zip(vector, offset))
                positions[moon.id] = self._make_position(
                    absolute, timestamp, moon_tier, parent_id=body.id
                )
                tiers[moon.id] = moon_tier

        observed_bodies = [
            body_id for body_id, tier in tiers.items()
            if tier is ResolutionTier.OBSERVED and body_id != self.catalog.star.id
        ]
        source = PositionSource.OBSERVED if observed_bodies else PositionSource.SIMULATED

        logger.debug(
            f"Resolved {len(positions)} bodies at {timestamp.isoformat()} "
            f"({len(observed_bodies)} observed)"
        )

        return ResolvedPositions(
            timestamp=timestamp, source=source, positions=positions, tiers=tiers
        )

    def resolve_simulated(self, timestamp: Optional[datetime] = None) -> ResolvedPositions:
        """Resolve with the local model only (same as a failed fetch)."""
        return self.resolve(timestamp, None)

    def is_fresh(self, observed: Optional[ObservedSnapshot], timestamp: datetime) -> bool:
        if observed is None:
            return False
        return abs(observed.age_seconds(timestamp)) <= self.max_observation_age

    def _resolve_body(self, body: CelestialBody, timestamp: datetime,
                      snapshot: Optional[ObservedSnapshot]) -> Tuple[Vector, ResolutionTier]:
        if body.is_star:
            if snapshot is not None and snapshot.get(body.id) is not None:
                return ORIGIN, ResolutionTier.OBSERVED
            return ORIGIN, ResolutionTier.SIMULATED

        if snapshot is not None:
            entry = snapshot.get(body.id)
            if entry is not None and entry.is_usable:
                vector = scale_to_render_units(
                    entry.x, entry.y, entry.z, entry.distance, body.orbit_radius
                )
                return vector, ResolutionTier.OBSERVED
            if entry is not None:
                logger.warning(f"Unusable observed position for {body.id}: distance={entry.distance}")

        return self._resolve_local(body, timestamp)

    def _resolve_local(self, body: CelestialBody,
                       timestamp: datetime) -> Tuple[Vector, ResolutionTier]:
        try:
            return simulate_position(body, timestamp), ResolutionTier.SIMULATED
        except OrbitModelError:
            return nominal_orbit_position(body), ResolutionTier.NOMINAL

    def _make_position(self, vector: Vector, timestamp: datetime, tier: ResolutionTier,
                       parent_id: Optional[str] = None) -> Position:
        x, y, z = vector
        source = (
            PositionSource.OBSERVED if tier is ResolutionTier.OBSERVED
            else PositionSource.SIMULATED
        )
        distance = vector_length(vector)
        if not math.isfinite(distance):
            distance = 0.0
        return Position(
            x=x, y=y, z=z,
            distance=distance,
            timestamp=timestamp,
            source=source,
            parent_id=parent_id,
        )
