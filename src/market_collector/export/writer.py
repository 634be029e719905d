from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from market_collector.data.schemas import (
    CollectionResult,
    FlowRecord,
    LiveSnapshot,
    OptionChainDay,
    SpotPriceRecord,
    VixRecord,
)

logger = logging.getLogger(__name__)

SPOT_COLUMNS = ["date", "open", "high", "low", "close", "volume"]
OPTION_COLUMNS = [
    "date",
    "spot_price",
    "expiry",
    "strike",
    "right",
    "premium",
    "implied_volatility",
    "delta",
    "gamma",
    "theta",
    "vega",
    "volume",
    "open_interest",
]
VIX_COLUMNS = ["date", "vix", "open", "high", "low", "close"]
FLOW_COLUMNS = ["date", "fii_buy", "fii_sell", "fii_net", "dii_buy", "dii_sell", "dii_net"]


def flatten_option_chains(days: Sequence[OptionChainDay]) -> pd.DataFrame:
    """One row per option, tagged with its sample date, spot and expiry."""
    rows: List[Dict[str, Any]] = []
    for day in days:
        for option in day.options:
            row = {"date": day.trade_date, "spot_price": day.spot_price, "expiry": day.expiry}
            row.update(option.model_dump())
            rows.append(row)
    return pd.DataFrame(rows, columns=OPTION_COLUMNS)


def _records_frame(records: Sequence, columns: List[str]) -> pd.DataFrame:
    rows = []
    for r in records:
        row = r.model_dump()
        row["date"] = row.pop("trade_date")
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)


class DataExporter:
    """
    Flat-file sink for collection results: CSV per data kind, JSON for
    run logs and live snapshots.
    """

    def __init__(self, output_dir: str | Path = "data-output"):
        self.output_dir = Path(output_dir)
        if not self.output_dir.exists():
            self.output_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created output directory: %s", self.output_dir)

    def _write_csv(self, df: pd.DataFrame, filename: str) -> Path:
        path = self.output_dir / filename
        df.to_csv(path, index=False)
        logger.info("Exported %d rows to: %s", len(df), path)
        return path

    def _write_json(self, payload: Any, filename: str) -> Path:
        path = self.output_dir / filename
        with open(path, "w") as f:
            json.dump(payload, f, indent=2, default=str)
        logger.info("Exported JSON to: %s", path)
        return path

    # ------------------------------------------------------------------
    # Historical series
    # ------------------------------------------------------------------

    def export_spot_prices(
        self, records: Optional[Sequence[SpotPriceRecord]], symbol: str
    ) -> Optional[Path]:
        if not records:
            logger.warning("No spot price data to export")
            return None
        df = _records_frame(records, SPOT_COLUMNS)
        return self._write_csv(df, f"{symbol}_historical_spot_prices.csv")

    def export_option_chains(
        self, days: Optional[Sequence[OptionChainDay]], symbol: str
    ) -> Optional[Path]:
        if not days:
            logger.warning("No option chain data to export")
            return None
        return self._write_csv(
            flatten_option_chains(days), f"{symbol}_historical_option_chains.csv"
        )

    def export_vix(self, records: Optional[Sequence[VixRecord]]) -> Optional[Path]:
        if not records:
            logger.warning("No VIX data to export")
            return None
        return self._write_csv(_records_frame(records, VIX_COLUMNS), "historical_vix_data.csv")

    def export_flow(
        self, records: Optional[Sequence[FlowRecord]], symbol: str
    ) -> Optional[Path]:
        if not records:
            logger.warning("No FII/DII data to export")
            return None
        return self._write_csv(_records_frame(records, FLOW_COLUMNS), f"{symbol}_fii_dii_data.csv")

    def export_run_log(self, result: CollectionResult, symbol: str) -> Path:
        log = {
            "symbol": symbol,
            "started_at": result.started_at,
            "finished_at": result.finished_at,
            "counts": {
                "spot_prices": len(result.spot_prices or []),
                "vix_records": len(result.vix_data or []),
                "flow_records": len(result.flow_data or []),
                "option_chain_days": len(result.option_chains),
            },
            "option_chain_dates": [d.trade_date for d in result.option_chains],
            "errors": result.errors,
        }
        return self._write_json(log, f"{symbol}_collection_log.json")

    def export_collection(self, result: CollectionResult, symbol: str) -> Dict[str, Path]:
        """Write every non-empty series of a historical run plus its run log."""
        written: Dict[str, Optional[Path]] = {
            "spot_prices": self.export_spot_prices(result.spot_prices, symbol),
            "option_chains": self.export_option_chains(result.option_chains, symbol),
            "vix": self.export_vix(result.vix_data),
            "flow": self.export_flow(result.flow_data, symbol),
            "run_log": self.export_run_log(result, symbol),
        }
        return {k: v for k, v in written.items() if v is not None}

    # ------------------------------------------------------------------
    # Live
    # ------------------------------------------------------------------

    def export_live_snapshot(self, snapshot: LiveSnapshot) -> Path:
        stamp = snapshot.timestamp.isoformat().replace(":", "-").replace(".", "-")
        return self._write_json(
            snapshot.model_dump(mode="json"), f"live_snapshot_{stamp}.json"
        )
