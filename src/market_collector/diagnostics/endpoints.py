"""
Endpoint probe: calls each API endpoint once and records whether it
answered, how long it took and what the payload looks like.

Useful before a long historical run to see which data kinds the account
actually has access to.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from market_collector.config.models import CollectorConfig
from market_collector.options.expiry import next_expiry
from market_collector.transport.client import BreezeClient
from market_collector.transport.result import Success, envelope_error, unwrap_payload

logger = logging.getLogger(__name__)


def describe_structure(data: Any) -> str:
    if data is None:
        return "null"
    if isinstance(data, list):
        inner = type(data[0]).__name__ if data else "unknown"
        return f"Array[{len(data)}] of {inner}"
    if isinstance(data, dict):
        return f"Object with keys: [{', '.join(map(str, data.keys()))}]"
    return type(data).__name__


def sample_payload(data: Any, items: int = 2, keys: int = 5) -> Any:
    if data is None:
        return None
    if isinstance(data, list):
        return data[:items]
    if isinstance(data, dict):
        return {k: data[k] for k in list(data)[:keys]}
    return data


class ProbeResult(BaseModel):
    name: str
    endpoint: str
    success: bool
    status: Optional[int] = None
    duration_ms: int
    data_structure: Optional[str] = None
    sample_data: Any = None
    error: Any = None


class ProbeReport(BaseModel):
    total_tests: int
    successful_tests: int
    success_rate: str
    timestamp: datetime
    results: List[ProbeResult] = Field(default_factory=list)


class EndpointProbe:
    def __init__(self, client: BreezeClient, config: CollectorConfig):
        self.client = client
        self.config = config
        self.results: List[ProbeResult] = []

    async def probe(
        self, name: str, endpoint: str, params: Optional[Mapping[str, Any]] = None
    ) -> ProbeResult:
        logger.info("Testing %s (%s) params=%s", name, endpoint, dict(params or {}))
        started = time.perf_counter()
        result = await self.client.request(endpoint, params)
        duration_ms = int((time.perf_counter() - started) * 1000)

        failed = envelope_error(result.data) if isinstance(result, Success) else None
        if isinstance(result, Success) and failed is None:
            data = unwrap_payload(result.data)
            probe = ProbeResult(
                name=name,
                endpoint=endpoint,
                success=True,
                status=result.status,
                duration_ms=duration_ms,
                data_structure=describe_structure(data),
                sample_data=sample_payload(data),
            )
            logger.info("%s - success (%dms): %s", name, duration_ms, probe.data_structure)
        else:
            error, status = failed if failed is not None else (result.error, result.status)
            probe = ProbeResult(
                name=name,
                endpoint=endpoint,
                success=False,
                status=status,
                duration_ms=duration_ms,
                error=error,
            )
            logger.warning("%s - failed: %s", name, error)

        self.results.append(probe)
        return probe

    def _probe_plan(self) -> List[tuple[str, str, Optional[Dict[str, Any]]]]:
        cfg = self.config
        ep = cfg.endpoints
        today = datetime.now(timezone.utc).date()
        month_ago = today - timedelta(days=30)
        instrument = {"stock_code": cfg.symbol, "exchange_code": cfg.exchange}
        return [
            ("Customer Profile", ep.profile, None),
            ("Market Status", ep.market_status, None),
            (
                f"Historical Spot Data ({cfg.symbol})",
                ep.historical_data,
                {
                    **instrument,
                    "product_type": "cash",
                    "from_date": month_ago.isoformat(),
                    "to_date": today.isoformat(),
                    "interval": "1day",
                },
            ),
            (
                f"Option Chain ({cfg.symbol})",
                ep.option_chain,
                {
                    **instrument,
                    "product_type": "options",
                    "expiry_date": next_expiry(today).isoformat(),
                    "right": "others",
                },
            ),
            (f"Live Quotes ({cfg.symbol})", ep.quotes, {**instrument, "product_type": "cash"}),
            ("VIX Data", ep.vix_data, None),
            ("FII/DII Data", ep.participant_data, {"stock_code": cfg.symbol, "date": today.isoformat()}),
            ("Indices Data", ep.indices, None),
        ]

    async def run_all(self) -> List[ProbeResult]:
        logger.info("Starting Breeze API endpoint testing...")
        if not await self.client.test_connection():
            logger.error("API connection failed. Please check your credentials.")
            return self.results

        for name, endpoint, params in self._probe_plan():
            await self.probe(name, endpoint, params)
        return self.results

    def report(self) -> ProbeReport:
        total = len(self.results)
        ok = sum(1 for r in self.results if r.success)
        rate = f"{round(ok / total * 100)}%" if total else "0%"
        return ProbeReport(
            total_tests=total,
            successful_tests=ok,
            success_rate=rate,
            timestamp=datetime.now(timezone.utc),
            results=list(self.results),
        )

    def write_report(self, output_dir: str | Path) -> Path:
        path = Path(output_dir) / "api_test_report.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.report().model_dump(mode="json"), f, indent=2, default=str)
        logger.info("Detailed report saved to: %s", path)
        return path
