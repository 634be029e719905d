from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from market_collector import __version__
from market_collector.collectors.monitor import LiveMonitor
from market_collector.config.loader import load_config, load_config_from_env, override_config
from market_collector.config.models import CollectorConfig, ConfigValidationError
from market_collector.diagnostics.endpoints import EndpointProbe
from market_collector.reporting.summary import (
    format_assessment,
    format_collection_summary,
    format_snapshot_digest,
)
from market_collector.runner.run import (
    ConnectionCheckFailed,
    build_client,
    run_audit,
    run_historical,
    run_monitor,
    run_snapshot,
)

SETUP_HELP = """SETUP REQUIRED:
1. Copy .env.example to .env
2. Add your Breeze API credentials (BREEZE_API_KEY, BREEZE_SECRET_KEY, BREEZE_SESSION_TOKEN)
3. Run the command again
"""


# ============================================================
# Config resolution
# ============================================================


def _resolve_config(args) -> CollectorConfig:
    if args.config:
        cfg = load_config(args.config)
    else:
        cfg = load_config_from_env(args.env_file)

    if args.output_dir:
        cfg = override_config(cfg, {"output": {"directory": args.output_dir}})
    return cfg


def _banner(title: str, cfg: CollectorConfig) -> None:
    print(title)
    print("=" * 60)
    print(f"Target Symbol: {cfg.symbol} ({cfg.exchange})")
    print(f"Historical Period: {cfg.historical_years} years")
    print(f"Refresh Interval: {cfg.refresh_interval_minutes} minutes")
    print(f"Strike Ranges: +/-{cfg.spot_range_percent_1}%, +/-{cfg.spot_range_percent_2}%")
    print("=" * 60)


# ============================================================
# Command: historical
# ============================================================


def cmd_historical(args, cfg: CollectorConfig) -> int:
    _banner("[mcollect] Historical data collection", cfg)
    run = asyncio.run(run_historical(cfg))

    print()
    print(format_collection_summary(run.result))
    for kind, path in run.files.items():
        print(f"  wrote {kind}: {path}")
    return 0


# ============================================================
# Command: snapshot
# ============================================================


def cmd_snapshot(args, cfg: CollectorConfig) -> int:
    _banner("[mcollect] Live data snapshot", cfg)
    run = asyncio.run(run_snapshot(cfg))

    print()
    print(format_snapshot_digest(run.snapshot))
    print(f"  wrote snapshot: {run.path}")
    return 0


# ============================================================
# Command: monitor
# ============================================================


def cmd_monitor(args, cfg: CollectorConfig) -> int:
    if args.interval is not None:
        cfg = override_config(cfg, {"refresh_interval_minutes": args.interval})
    _banner("[mcollect] Live data monitoring", cfg)
    print("Press Ctrl+C to stop monitoring\n")

    def on_ready(monitor: LiveMonitor) -> None:
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, monitor.stop)
        except (NotImplementedError, RuntimeError):
            pass

    def on_snapshot(snapshot) -> None:
        print(format_snapshot_digest(snapshot))

    try:
        monitor = asyncio.run(run_monitor(cfg, on_snapshot=on_snapshot, monitor_ready=on_ready))
    except KeyboardInterrupt:
        print("\nStopped.")
        return 0

    print(f"\nMonitoring stopped after {monitor.iterations} snapshots.")
    return 0


# ============================================================
# Command: probe
# ============================================================


async def _probe(cfg: CollectorConfig):
    async with build_client(cfg) as client:
        probe = EndpointProbe(client, cfg)
        await probe.run_all()
        path = probe.write_report(cfg.output.directory)
    return probe.report(), path


def cmd_probe(args, cfg: CollectorConfig) -> int:
    report, path = asyncio.run(_probe(cfg))

    print("API ENDPOINT TEST SUMMARY")
    print("=" * 50)
    print(
        f"Overall Success Rate: {report.successful_tests}/{report.total_tests} "
        f"({report.success_rate})\n"
    )
    for r in report.results:
        status = "OK  " if r.success else "FAIL"
        print(f"{status} {r.name}")
        print(f"   Endpoint: {r.endpoint}")
        print(f"   Duration: {r.duration_ms}ms")
        print(f"   {'Data: ' + str(r.data_structure) if r.success else 'Error: ' + str(r.error)}")
    print(f"\nDetailed report saved to: {path}")
    return 0


# ============================================================
# Command: audit
# ============================================================


def cmd_audit(args, cfg: CollectorConfig) -> int:
    if args.html:
        cfg = override_config(cfg, {"output": {"write_html_report": True}})
    _banner("[mcollect] Complete data audit", cfg)
    run = asyncio.run(run_audit(cfg))

    print()
    print(format_assessment(run.summary))
    print(f"\nAll data and reports saved to {cfg.output.directory}")
    return 0


# ============================================================
# Command: version
# ============================================================


def cmd_version(args, cfg=None) -> int:
    print(__version__)
    return 0


# ============================================================
# Main CLI
# ============================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mcollect")
    parser.add_argument("--config", default=None, help="Path to config YAML/JSON")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--output-dir", default=None, help="Directory for exported files")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_hist = sub.add_parser("historical", help="Collect historical data and export CSVs")
    p_hist.set_defaults(func=cmd_historical)

    p_snap = sub.add_parser("snapshot", help="Take one live data snapshot")
    p_snap.set_defaults(func=cmd_snapshot)

    p_mon = sub.add_parser("monitor", help="Poll live snapshots until Ctrl+C")
    p_mon.add_argument("--interval", type=float, default=None, help="Minutes between polls")
    p_mon.set_defaults(func=cmd_monitor)

    p_probe = sub.add_parser("probe", help="Test every API endpoint once")
    p_probe.set_defaults(func=cmd_probe)

    p_audit = sub.add_parser("audit", help="Probe, collect, snapshot and summarize")
    p_audit.add_argument("--html", action="store_true", help="Also write an HTML report")
    p_audit.set_defaults(func=cmd_audit)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.func is cmd_version:
        return cmd_version(args)

    try:
        cfg = _resolve_config(args)
        if not cfg.has_credentials:
            print(SETUP_HELP)
            return 1
        return args.func(args, cfg)
    except (ConfigValidationError, FileNotFoundError) as e:
        print(f"[mcollect] Invalid configuration: {e}", file=sys.stderr)
        return 1
    except ConnectionCheckFailed as e:
        print(f"[mcollect] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
