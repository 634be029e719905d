from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from market_collector.collectors.monitor import LiveMonitor, start_monitoring
from market_collector.data.schemas import LiveSnapshot

# 0.6 ms between snapshots
TINY_INTERVAL = 0.00001


class StubCollector:
    def __init__(self):
        self.count = 0

    async def snapshot(self) -> LiveSnapshot:
        self.count += 1
        return LiveSnapshot(timestamp=datetime.now(timezone.utc), symbol="ITC")


async def _until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.001)


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        LiveMonitor(StubCollector(), 0)


@pytest.mark.asyncio
async def test_double_start_returns_same_task():
    monitor = LiveMonitor(StubCollector(), interval_minutes=5)
    first = monitor.start()
    second = monitor.start()
    assert first is second
    assert monitor.is_running

    monitor.stop()
    await monitor.wait()
    assert not monitor.is_running


@pytest.mark.asyncio
async def test_stop_prevents_further_snapshots():
    seen = []
    collector = StubCollector()
    monitor = start_monitoring(collector, TINY_INTERVAL, seen.append)

    await _until(lambda: len(seen) >= 3)
    monitor.stop()
    await monitor.wait()
    delivered = len(seen)

    await asyncio.sleep(TINY_INTERVAL * 60 * 20)
    assert len(seen) == delivered
    assert collector.count == delivered
    assert monitor.iterations == delivered
    assert monitor.last_snapshot is seen[-1]


@pytest.mark.asyncio
async def test_stop_wakes_a_long_wait():
    monitor = start_monitoring(StubCollector(), interval_minutes=60)
    await _until(lambda: monitor.iterations == 1)

    monitor.stop()
    await asyncio.wait_for(monitor.wait(), timeout=1.0)
    assert monitor.iterations == 1


@pytest.mark.asyncio
async def test_sink_errors_do_not_stop_the_loop():
    calls = []

    async def flaky_sink(snapshot):
        calls.append(snapshot)
        if len(calls) == 1:
            raise RuntimeError("disk full")

    monitor = start_monitoring(StubCollector(), TINY_INTERVAL, flaky_sink)
    await _until(lambda: len(calls) >= 2)
    monitor.stop()
    await monitor.wait()
    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_restart_after_stop():
    monitor = LiveMonitor(StubCollector(), interval_minutes=60)
    first = monitor.start()
    await _until(lambda: monitor.iterations == 1)
    monitor.stop()
    await monitor.wait()

    second = monitor.start()
    assert second is not first
    await _until(lambda: monitor.iterations == 2)
    monitor.stop()
    await monitor.wait()


class SlowCollector(StubCollector):
    async def snapshot(self) -> LiveSnapshot:
        await asyncio.sleep(0.05)
        return await super().snapshot()


@pytest.mark.asyncio
async def test_restart_while_snapshot_in_flight():
    collector = SlowCollector()
    monitor = LiveMonitor(collector, interval_minutes=60)
    first = monitor.start()
    await asyncio.sleep(0.01)  # first snapshot is now in flight

    monitor.stop()
    second = monitor.start()
    assert second is not first
    assert monitor.is_running

    await _until(lambda: monitor.iterations == 2)
    assert first.done()
    assert monitor.is_running

    monitor.stop()
    await monitor.wait()
    assert monitor.iterations == 2


@pytest.mark.asyncio
async def test_start_after_stop_but_before_first_run():
    monitor = LiveMonitor(StubCollector(), interval_minutes=60)
    monitor.start()
    monitor.stop()
    monitor.start()

    await _until(lambda: monitor.iterations == 1)
    assert monitor.is_running
    monitor.stop()
    await monitor.wait()
