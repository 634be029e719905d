from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from market_collector.collectors.historical import HistoricalCollector
from market_collector.collectors.live import LiveCollector
from market_collector.collectors.monitor import LiveMonitor, SnapshotSink
from market_collector.config.models import CollectorConfig
from market_collector.data.schemas import CollectionResult, LiveSnapshot
from market_collector.diagnostics.endpoints import EndpointProbe, ProbeResult
from market_collector.export.writer import DataExporter
from market_collector.reporting.html_report import generate_html_report
from market_collector.reporting.summary import (
    CollectionSummary,
    build_summary,
    write_summary,
)
from market_collector.transport.client import BreezeClient

LOGGER = logging.getLogger(__name__)


class ConnectionCheckFailed(RuntimeError):
    """The API did not answer the connectivity check; nothing was collected."""

    pass


# ======================================================================
# Result containers
# ======================================================================


@dataclass
class HistoricalRun:
    result: CollectionResult
    files: Dict[str, Path] = field(default_factory=dict)


@dataclass
class SnapshotRun:
    snapshot: LiveSnapshot
    path: Optional[Path] = None


@dataclass
class AuditRun:
    probes: List[ProbeResult]
    historical: CollectionResult
    snapshot: LiveSnapshot
    summary: CollectionSummary
    summary_path: Path
    html_path: Optional[Path] = None


# ======================================================================
# Wiring helpers
# ======================================================================


def build_client(cfg: CollectorConfig) -> BreezeClient:
    return BreezeClient(cfg.api, cfg.endpoints)


async def _ensure_connection(client: BreezeClient) -> None:
    if not await client.test_connection():
        raise ConnectionCheckFailed(
            "Cannot proceed without API connection. Check the credentials in your .env file."
        )


# ======================================================================
# Entry points
# ======================================================================


async def run_historical(
    cfg: CollectorConfig,
    client: Optional[BreezeClient] = None,
    check_connection: bool = True,
) -> HistoricalRun:
    client = client or build_client(cfg)
    async with client:
        if check_connection:
            await _ensure_connection(client)

        LOGGER.info(
            "Historical collection: %s, %d years, bands +/-%s%% and +/-%s%%",
            cfg.symbol,
            cfg.historical_years,
            cfg.spot_range_percent_1,
            cfg.spot_range_percent_2,
        )
        result = await HistoricalCollector(client.request, cfg).collect_all()

    exporter = DataExporter(cfg.output.directory)
    files = exporter.export_collection(result, cfg.symbol)
    return HistoricalRun(result=result, files=files)


async def run_snapshot(
    cfg: CollectorConfig,
    client: Optional[BreezeClient] = None,
    check_connection: bool = True,
) -> SnapshotRun:
    client = client or build_client(cfg)
    async with client:
        if check_connection:
            await _ensure_connection(client)
        snapshot = await LiveCollector(client.request, cfg).snapshot()

    path = DataExporter(cfg.output.directory).export_live_snapshot(snapshot)
    return SnapshotRun(snapshot=snapshot, path=path)


async def run_monitor(
    cfg: CollectorConfig,
    on_snapshot: Optional[SnapshotSink] = None,
    client: Optional[BreezeClient] = None,
    check_connection: bool = True,
    monitor_ready: Optional[Callable[[LiveMonitor], None]] = None,
) -> LiveMonitor:
    """
    Poll until the monitor is stopped. Every snapshot is written to disk
    and then handed to ``on_snapshot``.

    ``monitor_ready`` receives the started monitor so the caller can stop it.
    """
    client = client or build_client(cfg)
    exporter = DataExporter(cfg.output.directory)

    async def sink(snapshot: LiveSnapshot) -> None:
        exporter.export_live_snapshot(snapshot)
        if on_snapshot is not None:
            outcome = on_snapshot(snapshot)
            if inspect.isawaitable(outcome):
                await outcome

    async with client:
        if check_connection:
            await _ensure_connection(client)
        monitor = LiveMonitor(
            LiveCollector(client.request, cfg), cfg.refresh_interval_minutes, sink
        )
        monitor.start()
        if monitor_ready is not None:
            monitor_ready(monitor)
        await monitor.wait()
    return monitor


async def run_audit(
    cfg: CollectorConfig,
    client: Optional[BreezeClient] = None,
) -> AuditRun:
    """Probe endpoints, collect history, take a snapshot and write a summary."""
    client = client or build_client(cfg)
    exporter = DataExporter(cfg.output.directory)

    async with client:
        LOGGER.info("STEP 1: Testing API endpoints")
        probe = EndpointProbe(client, cfg)
        probes = await probe.run_all()
        probe.write_report(cfg.output.directory)

        LOGGER.info("STEP 2: Collecting historical data")
        historical = await HistoricalCollector(client.request, cfg).collect_all()
        exporter.export_collection(historical, cfg.symbol)

        LOGGER.info("STEP 3: Taking live data snapshot")
        snapshot = await LiveCollector(client.request, cfg).snapshot()
        exporter.export_live_snapshot(snapshot)

    LOGGER.info("STEP 4: Generating summary report")
    summary = build_summary(historical, snapshot, cfg.symbol)
    summary_path = write_summary(summary, cfg.output.directory)
    html_path = None
    if cfg.output.write_html_report:
        html_path = generate_html_report(
            summary, Path(cfg.output.directory) / "data_collection_summary.html"
        )

    return AuditRun(
        probes=probes,
        historical=historical,
        snapshot=snapshot,
        summary=summary,
        summary_path=summary_path,
        html_path=html_path,
    )
