"""
Refresh Scheduler

Drives periodic position updates on an asyncio event loop:

- a fast simulation tick (default 500 ms) that re-resolves positions and
  publishes the new map when something moved visibly
- a slow fetch loop (default 3 h) that refreshes the observed snapshot

The blocking HTTP fetch runs in the default executor so the tick loop never waits
on it. Every fetch is tagged with a generation number; when a newer fetch has
started, the result of an older one is discarded before it reaches the service
cache (last write wins). Published maps are whole ResolvedPositions objects,
replaced atomically.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional, Set

import structlog

from orrery_service.config import FETCH_INTERVAL_S, POSITION_CHANGE_THRESHOLD, SIMULATION_INTERVAL_MS
from orrery_service.positions import ObservedSnapshot, ResolvedPositions
from orrery_service.service import PositionService

logger = structlog.get_logger(__name__)

Publisher = Callable[[ResolvedPositions], None]


def has_significant_change(previous: Optional[ResolvedPositions], current: ResolvedPositions,
                           threshold: float = POSITION_CHANGE_THRESHOLD) -> bool:
    """True when any body moved more than threshold on any axis, or appeared."""
    if previous is None or previous.source != current.source:
        return True

    for body_id, position in current.positions.items():
        before = previous.get(body_id)
        if before is None:
            return True
        if (abs(before.x - position.x) > threshold
                or abs(before.y - position.y) > threshold
                or abs(before.z - position.z) > threshold):
            return True

    return False


class RefreshScheduler:
    """
    Periodic resolver driver.

    Args:
        service: PositionService providing the resolver and the fetcher
        publish: Callback receiving each new ResolvedPositions map
        simulation_interval: Seconds between resolve ticks
        fetch_interval: Seconds between ephemeris fetch attempts
        change_threshold: Minimum per-axis movement that triggers a publish
    """

    def __init__(self, service: PositionService, publish: Publisher,
                 simulation_interval: float = SIMULATION_INTERVAL_MS / 1000.0,
                 fetch_interval: float = FETCH_INTERVAL_S,
                 change_threshold: float = POSITION_CHANGE_THRESHOLD):
        self.service = service
        self.publish = publish
        self.simulation_interval = simulation_interval
        self.fetch_interval = fetch_interval
        self.change_threshold = change_threshold

        self.current: Optional[ResolvedPositions] = None
        self.snapshot: Optional[ObservedSnapshot] = None
        self._generation = 0
        self._stop: Optional[asyncio.Event] = None
        self._fetch_tasks: Set[asyncio.Task] = set()

    def tick(self, now: Optional[datetime] = None, force: bool = False) -> bool:
        """
        Resolve once and publish when the map changed significantly.

        Returns:
            True if a new map was published
        """
        now = now or datetime.now(timezone.utc)
        resolved = self.service.resolver.resolve(now, self.snapshot)

        if not force and not has_significant_change(self.current, resolved, self.change_threshold):
            return False

        self.current = resolved
        self.publish(resolved)
        return True

    async def fetch_cycle(self) -> bool:
        """
        One fetch attempt in the executor.

        Returns:
            True if the result was applied, False if a newer fetch superseded it
        """
        self._generation += 1
        generation = self._generation

        loop = asyncio.get_running_loop()
        snapshot, error = await loop.run_in_executor(None, self.service.attempt_fetch)

        if generation != self._generation:
            logger.info("stale_fetch_discarded", generation=generation, latest=self._generation)
            return False

        self.snapshot = self.service.apply_fetch(snapshot, error)
        self.tick(force=True)
        return True

    async def run(self) -> None:
        """Run the tick loop (and the fetch loop when live) until stop() is called."""
        self._stop = asyncio.Event()
        if self.snapshot is None:
            self.snapshot = self.service.observed_snapshot()
        fetch_loop = asyncio.create_task(self._fetch_loop()) if self.service.is_live else None

        logger.info(
            "scheduler_started",
            live=self.service.is_live,
            simulation_interval=self.simulation_interval,
            fetch_interval=self.fetch_interval,
        )

        try:
            while not self._stop.is_set():
                self.tick()
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.simulation_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            pending = list(self._fetch_tasks)
            if fetch_loop is not None:
                pending.append(fetch_loop)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("scheduler_stopped")

    def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()

    async def _fetch_loop(self) -> None:
        while not self._stop.is_set():
            task = asyncio.create_task(self.fetch_cycle())
            self._fetch_tasks.add(task)
            task.add_done_callback(self._fetch_tasks.discard)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.fetch_interval)
            except asyncio.TimeoutError:
                pass
