"""
Position Service

Ties the ephemeris fetcher, the snapshot cache and the resolver together:

    live fetch -> local orbital model

A fetch failure never reaches the caller. It is logged and the positions come
from the local orbital model. The cached snapshot only serves reads that do not
fetch (for instance right after a restart with Redis), and stops being used once
a fetch attempt has failed.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

import structlog

from orrery_service.cache import SnapshotCache
from orrery_service.catalog import DEFAULT_CATALOG, Catalog
from orrery_service.config import ServiceConfig
from orrery_service.ephemeris_client import EphemerisFetcher, build_fetcher
from orrery_service.exceptions import EphemerisError
from orrery_service.positions import ObservedSnapshot, ObserverLocation, ResolvedPositions
from orrery_service.resolver import PositionResolver

logger = structlog.get_logger(__name__)


class PositionService:
    """Resolve catalog positions with live, cached and simulated tiers."""

    def __init__(self, catalog: Catalog = DEFAULT_CATALOG,
                 fetcher: Optional[EphemerisFetcher] = None,
                 cache: Optional[SnapshotCache] = None,
                 resolver: Optional[PositionResolver] = None,
                 observer: Optional[ObserverLocation] = None):
        self.catalog = catalog
        self.fetcher = fetcher
        self.cache = cache or SnapshotCache()
        self.resolver = resolver or PositionResolver(catalog)
        self.observer = observer or ObserverLocation()
        self.last_fetch_error: Optional[str] = None
        self.last_fetch_at: Optional[datetime] = None

    @classmethod
    def from_config(cls, config: Optional[ServiceConfig] = None,
                    catalog: Catalog = DEFAULT_CATALOG) -> "PositionService":
        config = config or ServiceConfig()
        return cls(
            catalog=catalog,
            fetcher=build_fetcher(config),
            cache=SnapshotCache(redis_url=config.REDIS_URL, ttl=config.CACHE_TTL),
            resolver=PositionResolver(catalog, max_observation_age=config.OBSERVATION_MAX_AGE_S),
            observer=ObserverLocation(
                latitude=config.OBSERVER_LATITUDE,
                longitude=config.OBSERVER_LONGITUDE,
                elevation=config.OBSERVER_ELEVATION,
            ),
        )

    @property
    def is_live(self) -> bool:
        return self.fetcher is not None
    def attempt_fetch(self, timestamp: Optional[datetime] = None
                      ) -> Tuple[Optional[ObservedSnapshot], Optional[EphemerisError]]:
        """
        Make one fetch attempt without touching the cache or the service status.

        Safe to run in a worker thread; the result is applied with apply_fetch().

        Returns:
            (snapshot, None) on success, (None, error) on failure,
            (None, None) when there is no fetcher
        """
        if self.fetcher is None:
            return None, None

        timestamp = timestamp or datetime.now(timezone.utc)
        try:
            return self.fetcher.fetch_observed(timestamp, self.observer), None
        except EphemerisError as e:
            logger.warning(
                "ephemeris_fetch_failed",
                provider=e.provider or self.fetcher.provider,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None, e

    def apply_fetch(self, snapshot: Optional[ObservedSnapshot],
                    error: Optional[EphemerisError] = None) -> Optional[ObservedSnapshot]:
        """
        Record the outcome of a fetch attempt.

        A successful snapshot becomes the cached one. After a failure the source is
        no longer confirmed reachable, so no snapshot is returned and the cached one
        is not used again until a later fetch succeeds.

        Returns:
            The snapshot to resolve with (None after a failure)
        """
        if snapshot is None and error is None:
            return None

        self.last_fetch_at = datetime.now(timezone.utc)
        if error is not None:
            self.last_fetch_error = str(error)
            return None

        self.last_fetch_error = None
        self.cache.store(snapshot)
        return snapshot

    def refresh_observations(self, timestamp: Optional[datetime] = None) -> Optional[ObservedSnapshot]:
        """
        Make one fetch attempt and return the snapshot to resolve with.

        Returns:
            The fresh snapshot on success, otherwise None
        """
        return self.apply_fetch(*self.attempt_fetch(timestamp))

    def observed_snapshot(self) -> Optional[ObservedSnapshot]:
        """Cached snapshot, unless the most recent fetch attempt failed."""
        if self.last_fetch_error is not None:
            return None
        return self.cache.load()

    def current_positions(self, timestamp: Optional[datetime] = None) -> ResolvedPositions:
        """Resolve with the cached snapshot (restored from Redis at startup)."""
        return self.resolver.resolve(timestamp, self.observed_snapshot())

    def update(self, timestamp: Optional[datetime] = None) -> ResolvedPositions:
        """Fetch (one attempt), then resolve."""
        timestamp = timestamp or datetime.now(timezone.utc)
        snapshot = self.refresh_observations(timestamp)
        resolved = self.resolver.resolve(timestamp, snapshot)
        logger.info(
            "positions_resolved",
            bodies=len(resolved),
            source=resolved.source.value,
        )
        return resolved
