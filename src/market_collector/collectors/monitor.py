from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from market_collector.collectors.live import LiveCollector
from market_collector.data.schemas import LiveSnapshot

logger = logging.getLogger(__name__)

SnapshotSink = Callable[[LiveSnapshot], Union[None, Awaitable[Any]]]


class LiveMonitor:
    """
    Handle for one polling loop: snapshot -> sink -> wait -> repeat.

    The caller owns the handle; ``stop()`` is cooperative. The loop checks
    the stop flag before each iteration, a pending wait wakes up at once, and
    a snapshot already in flight is allowed to finish.
    """

    def __init__(
        self,
        collector: LiveCollector,
        interval_minutes: float,
        on_snapshot: Optional[SnapshotSink] = None,
    ):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.collector = collector
        self.interval_minutes = interval_minutes
        self.on_snapshot = on_snapshot
        self.iterations = 0
        self.last_snapshot: Optional[LiveSnapshot] = None
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start(self) -> asyncio.Task:
        """
        Start polling on the running loop; a second call returns the same task.

        Starting again after ``stop()`` while the old loop is still finishing
        queues a new loop behind it.
        """
        if self.is_running and not self._stop.is_set():
            logger.warning("Live monitoring is already running")
            return self._task

        logger.info("Starting live data monitoring (%s min intervals)...", self.interval_minutes)
        previous = self._task if self.is_running else None
        # fresh event per run; a finishing loop keeps the one already set
        self._stop = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(self._stop, previous))
        return self._task

    def stop(self) -> None:
        logger.info("Stopping live data monitoring...")
        self._stop.set()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def _deliver(self, snapshot: LiveSnapshot) -> None:
        if self.on_snapshot is None:
            return
        try:
            outcome = self.on_snapshot(snapshot)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Snapshot sink raised; monitoring continues")

    async def _run(self, stop: asyncio.Event, previous: Optional[asyncio.Task] = None) -> None:
        if previous is not None:
            await asyncio.wait({previous})

        while not stop.is_set():
            snapshot = await self.collector.snapshot()
            self.iterations += 1
            self.last_snapshot = snapshot
            logger.info(
                "Live data update: time=%s spot=%s vix=%s options=%s",
                snapshot.timestamp.isoformat(),
                snapshot.spot_price.price if snapshot.spot_price else None,
                snapshot.vix.vix if snapshot.vix else None,
                snapshot.option_chain.total if snapshot.option_chain else 0,
            )
            await self._deliver(snapshot)

            if stop.is_set():
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Live monitoring stopped after %d snapshots", self.iterations)


def start_monitoring(
    collector: LiveCollector,
    interval_minutes: float,
    on_snapshot: Optional[SnapshotSink] = None,
) -> LiveMonitor:
    """Create a monitor and start it on the running event loop."""
    monitor = LiveMonitor(collector, interval_minutes, on_snapshot)
    monitor.start()
    return monitor
