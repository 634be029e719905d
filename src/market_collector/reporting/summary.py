"""
Summary and console digests for collection runs.

Nothing here talks to the API; callers hand in finished results.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from market_collector.data.schemas import CollectionResult, LiveSnapshot


class HistoricalSummary(BaseModel):
    spot_prices_count: int = 0
    vix_records_count: int = 0
    option_chain_days: int = 0
    flow_records_count: int = 0
    errors: List[str] = Field(default_factory=list)


class LiveSummary(BaseModel):
    current_spot: Optional[float] = None
    current_vix: Optional[float] = None
    options_available: int = 0
    last_updated: Optional[datetime] = None
    errors: List[str] = Field(default_factory=list)


class DataQuality(BaseModel):
    historical_data_complete: bool = False
    live_data_working: bool = False
    option_chains_available: bool = False
    vix_data_available: bool = False

    @property
    def ready(self) -> bool:
        return (
            self.historical_data_complete
            and self.live_data_working
            and self.option_chains_available
        )


class CollectionSummary(BaseModel):
    generated_at: datetime
    symbol: str
    historical: HistoricalSummary
    live: LiveSummary
    data_quality: DataQuality


def build_summary(
    result: Optional[CollectionResult],
    snapshot: Optional[LiveSnapshot],
    symbol: str,
) -> CollectionSummary:
    historical = HistoricalSummary()
    if result is not None:
        historical = HistoricalSummary(
            spot_prices_count=len(result.spot_prices or []),
            vix_records_count=len(result.vix_data or []),
            option_chain_days=len(result.option_chains),
            flow_records_count=len(result.flow_data or []),
            errors=list(result.errors),
        )

    live = LiveSummary()
    if snapshot is not None:
        live = LiveSummary(
            current_spot=snapshot.spot_price.price if snapshot.spot_price else None,
            current_vix=snapshot.vix.vix if snapshot.vix else None,
            options_available=snapshot.option_chain.total if snapshot.option_chain else 0,
            last_updated=snapshot.timestamp,
            errors=list(snapshot.errors),
        )

    quality = DataQuality(
        historical_data_complete=historical.spot_prices_count > 0,
        live_data_working=live.current_spot is not None,
        option_chains_available=live.options_available > 0,
        vix_data_available=live.current_vix is not None,
    )

    return CollectionSummary(
        generated_at=datetime.now(timezone.utc),
        symbol=symbol,
        historical=historical,
        live=live,
        data_quality=quality,
    )


def write_summary(summary: CollectionSummary, output_dir: str | Path) -> Path:
    path = Path(output_dir) / "data_collection_summary.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(summary.model_dump(mode="json"), f, indent=2)
    return path


# ============================================================
# Console digests
# ============================================================


def format_snapshot_digest(snapshot: LiveSnapshot) -> str:
    lines = [f"[{snapshot.timestamp.isoformat()}] {snapshot.symbol}"]
    if snapshot.spot_price:
        lines.append(f"  Spot: {snapshot.spot_price.price}")
    if snapshot.vix:
        lines.append(f"  VIX: {snapshot.vix.vix}")
    if snapshot.option_chain:
        chain = snapshot.option_chain
        lines.append(f"  Options available: {chain.total}")
        lines.append(
            f"  Band 1 [{chain.bands.band1.lower}-{chain.bands.band1.upper}]: {len(chain.in_band1)}"
        )
        lines.append(
            f"  Band 2 [{chain.bands.band2.lower}-{chain.bands.band2.upper}]: {len(chain.in_band2)}"
        )
    if snapshot.flow:
        lines.append(f"  FII/DII records: {len(snapshot.flow.records)}")
    if snapshot.errors:
        lines.append("  Errors:")
        lines.extend(f"    - {e}" for e in snapshot.errors)
    return "\n".join(lines)


def format_collection_summary(result: CollectionResult) -> str:
    lines = [
        "HISTORICAL DATA COLLECTION SUMMARY",
        "=" * 50,
        f"Spot Price Records: {len(result.spot_prices or [])}",
        f"VIX Records: {len(result.vix_data or [])}",
        f"Option Chain Days: {len(result.option_chains)}",
        f"FII/DII Records: {len(result.flow_data or [])}",
        f"Errors Encountered: {len(result.errors)}",
    ]
    if result.errors:
        lines.append("Errors:")
        lines.extend(f"  - {e}" for e in result.errors)
    return "\n".join(lines)


def format_assessment(summary: CollectionSummary) -> str:
    q = summary.data_quality

    def mark(flag: bool) -> str:
        return "Available" if flag else "Missing"

    lines = [
        "DATA AVAILABILITY ASSESSMENT",
        "=" * 40,
        f"Historical Spot Data: {mark(q.historical_data_complete)}",
        f"Live Spot Data: {mark(q.live_data_working)}",
        f"Option Chains: {mark(q.option_chains_available)}",
        f"VIX Data: {mark(q.vix_data_available)}",
        f"Overall Readiness: {'Ready' if q.ready else 'Needs Attention'}",
    ]
    return "\n".join(lines)
