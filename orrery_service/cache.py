"""
Observed Snapshot Cache

Keeps the last good ephemeris snapshot so a failed fetch can fall back to the
previous observation before dropping to the local orbital model.

The in-memory copy is always kept. When a Redis URL is configured the snapshot
is also written with a TTL so restarted processes can reuse it; any Redis error
disables Redis for the rest of the process and is only logged.
"""

from typing import Optional

import redis
import structlog

from orrery_service.positions import ObservedSnapshot

logger = structlog.get_logger(__name__)

CACHE_KEY = "orrery:observed_snapshot"


class SnapshotCache:
    """Last-known-good ObservedSnapshot, in memory with optional Redis backing."""

    def __init__(self, redis_url: Optional[str] = None, ttl: int = 21600,
                 redis_client=None):
        self.ttl = ttl
        self._snapshot: Optional[ObservedSnapshot] = None
        self.redis_client = redis_client

        if self.redis_client is None and redis_url:
            try:
                self.redis_client = redis.from_url(redis_url, decode_responses=True)
                self.redis_client.ping()
                logger.info("redis_connected", url=redis_url)
            except (redis.exceptions.RedisError, ValueError) as e:
                logger.warning("redis_unavailable", error=str(e))
                self.redis_client = None

    @property
    def snapshot(self) -> Optional[ObservedSnapshot]:
        return self._snapshot

    def store(self, snapshot: ObservedSnapshot) -> None:
        self._snapshot = snapshot

        if self.redis_client is None:
            return
        try:
            self.redis_client.setex(CACHE_KEY, self.ttl, snapshot.model_dump_json())
        except redis.exceptions.RedisError as e:
            logger.warning("redis_write_failed", error=str(e))
            self.redis_client = None

    def load(self) -> Optional[ObservedSnapshot]:
        """Return the in-memory snapshot, or the Redis copy when memory is empty."""
        if self._snapshot is not None or self.redis_client is None:
            return self._snapshot

        try:
            cached = self.redis_client.get(CACHE_KEY)
        except redis.exceptions.RedisError as e:
            logger.warning("redis_read_failed", error=str(e))
            self.redis_client = None
            return None

        if not cached:
            return None

        try:
            self._snapshot = ObservedSnapshot.model_validate_json(cached)
        except ValueError as e:
            logger.warning("cached_snapshot_invalid", error=str(e))
            return None

        logger.info("using_cached_snapshot", provider=self._snapshot.provider)
        return self._snapshot

    def clear(self) -> None:
        self._snapshot = None
        if self.redis_client is None:
            return
        try:
            self.redis_client.delete(CACHE_KEY)
        except redis.exceptions.RedisError as e:
            logger.warning("redis_delete_failed", error=str(e))
            self.redis_client = None
