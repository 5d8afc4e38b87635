"""
Tests for the Refresh Scheduler

Tests the asyncio refresh loops:
- Change detection between successive position maps
- Publishing on significant change only
- Discarding results of superseded fetches before they reach the cache
- Starting from a cached snapshot
- Start/stop of the tick and fetch loops

Run with:
    python -m pytest tests/test_scheduler.py -v
"""

import asyncio
import threading
import unittest
from datetime import datetime, timedelta, timezone

from orrery_service.cache import SnapshotCache
from orrery_service.positions import ObservedPosition, ObservedSnapshot, PositionSource
from orrery_service.scheduler import RefreshScheduler, has_significant_change
from orrery_service.service import PositionService

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_snapshot(x):
    return ObservedSnapshot(
        provider="test",
        fetched_at=datetime.now(timezone.utc),
        positions={"mars": ObservedPosition(body_id="mars", x=x, y=0.0, z=1.0,
                                            distance=(x * x + 1.0) ** 0.5)},
    )


class BlockingFetcher:
    """First call blocks until released; later calls return immediately."""

    provider = "blocking"

    def __init__(self, first, second):
        self.first = first
        self.second = second
        self.entered = threading.Event()
        self.release = threading.Event()
        self._lock = threading.Lock()
        self.calls = 0

    def fetch_observed(self, timestamp=None, observer=None):
        with self._lock:
            self.calls += 1
            call = self.calls
        if call == 1:
            self.entered.set()
            self.release.wait(timeout=5)
            return self.first
        return self.second


class CountingFetcher:
    provider = "counting"

    def __init__(self, snapshot):
        self.snapshot = snapshot
        self.calls = 0

    def fetch_observed(self, timestamp=None, observer=None):
        self.calls += 1
        return self.snapshot


class TestChangeDetection(unittest.TestCase):
    """Test the publish threshold."""

    def setUp(self):
        self.resolver = PositionService().resolver

    def test_first_map_is_a_change(self):
        self.assertTrue(has_significant_change(None, self.resolver.resolve(T0)))

    def test_identical_maps(self):
        resolved = self.resolver.resolve(T0)
        self.assertFalse(has_significant_change(resolved, self.resolver.resolve(T0)))

    def test_small_time_step_below_threshold(self):
        before = self.resolver.resolve(T0)
        after = self.resolver.resolve(T0 + timedelta(milliseconds=500))
        self.assertFalse(has_significant_change(before, after))

    def test_large_time_step(self):
        before = self.resolver.resolve(T0)
        after = self.resolver.resolve(T0 + timedelta(days=5))
        self.assertTrue(has_significant_change(before, after))

    def test_source_change(self):
        before = self.resolver.resolve(T0)
        snapshot = ObservedSnapshot(
            provider="test", fetched_at=T0,
            positions={"mars": ObservedPosition(body_id="mars", x=1.0, y=0.0, z=0.0, distance=1.0)},
        )
        after = self.resolver.resolve(T0, snapshot)

        self.assertEqual(after.source, PositionSource.OBSERVED)
        self.assertTrue(has_significant_change(before, after))


class TestTick(unittest.TestCase):
    """Test synchronous ticks."""

    def test_publish_on_change_only(self):
        published = []
        scheduler = RefreshScheduler(PositionService(), published.append)

        self.assertTrue(scheduler.tick(T0))
        self.assertFalse(scheduler.tick(T0))
        self.assertTrue(scheduler.tick(T0 + timedelta(days=1)))
        self.assertTrue(scheduler.tick(T0 + timedelta(days=1), force=True))

        self.assertEqual(len(published), 3)
        self.assertIs(scheduler.current, published[-1])

    def test_published_maps_are_replaced_whole(self):
        published = []
        scheduler = RefreshScheduler(PositionService(), published.append)

        scheduler.tick(T0)
        scheduler.tick(T0 + timedelta(days=1))

        self.assertIsNot(published[0], published[1])
        self.assertEqual(published[0].timestamp, T0)


class TestFetchCycle(unittest.IsolatedAsyncioTestCase):
    """Test fetch cycles on the event loop."""

    async def test_superseded_fetch_discarded(self):
        older = make_snapshot(1.0)
        newer = make_snapshot(-1.0)
        fetcher = BlockingFetcher(older, newer)
        published = []
        scheduler = RefreshScheduler(PositionService(fetcher=fetcher), published.append)

        first = asyncio.create_task(scheduler.fetch_cycle())
        while not fetcher.entered.is_set():
            await asyncio.sleep(0.01)

        second_applied = await scheduler.fetch_cycle()
        fetcher.release.set()
        first_applied = await first

        self.assertTrue(second_applied)
        self.assertFalse(first_applied)
        self.assertIs(scheduler.snapshot, newer)
        self.assertEqual(len(published), 1)
        self.assertLess(published[0]["mars"].x, 0)

    async def test_superseded_fetch_leaves_newest_in_cache(self):
        older = make_snapshot(1.0)
        newer = make_snapshot(-1.0)
        fetcher = BlockingFetcher(older, newer)
        scheduler = RefreshScheduler(PositionService(fetcher=fetcher), lambda resolved: None)

        first = asyncio.create_task(scheduler.fetch_cycle())
        while not fetcher.entered.is_set():
            await asyncio.sleep(0.01)

        await scheduler.fetch_cycle()
        fetcher.release.set()
        await first

        self.assertIs(scheduler.service.cache.snapshot, newer)
        self.assertIs(scheduler.service.observed_snapshot(), newer)
        self.assertLess(scheduler.service.current_positions()["mars"].x, 0)

    async def test_fetch_without_provider(self):
        published = []
        scheduler = RefreshScheduler(PositionService(), published.append)

        applied = await scheduler.fetch_cycle()

        self.assertTrue(applied)
        self.assertIsNone(scheduler.snapshot)
        self.assertEqual(published[0].source, PositionSource.SIMULATED)


class TestRunLoop(unittest.IsolatedAsyncioTestCase):
    """Test the long-running scheduler loop."""

    async def test_simulated_run_and_stop(self):
        published = []
        scheduler = RefreshScheduler(PositionService(), published.append, simulation_interval=0.01)

        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.05)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        self.assertGreaterEqual(len(published), 1)
        self.assertIsNone(scheduler.snapshot)

    async def test_live_run_fetches_once_per_interval(self):
        fetcher = CountingFetcher(make_snapshot(1.0))
        published = []
        scheduler = RefreshScheduler(
            PositionService(fetcher=fetcher), published.append,
            simulation_interval=0.01, fetch_interval=3600,
        )

        task = asyncio.create_task(scheduler.run())
        for _ in range(100):
            if scheduler.snapshot is not None:
                break
            await asyncio.sleep(0.01)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        self.assertEqual(fetcher.calls, 1)
        self.assertIs(scheduler.snapshot, fetcher.snapshot)
        self.assertEqual(published[-1].source, PositionSource.OBSERVED)

    async def test_run_starts_from_cached_snapshot(self):
        """A snapshot already in the cache (for instance from Redis) is used from the first tick."""
        cache = SnapshotCache()
        restored = make_snapshot(1.0)
        cache.store(restored)
        published = []
        scheduler = RefreshScheduler(
            PositionService(cache=cache), published.append, simulation_interval=0.01,
        )

        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.03)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        self.assertIs(scheduler.snapshot, restored)
        self.assertEqual(published[0].source, PositionSource.OBSERVED)


if __name__ == "__main__":
    unittest.main()
