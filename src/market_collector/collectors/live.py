from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from market_collector.collectors.base import BaseCollector, FetchError, parse_records
from market_collector.data.schemas import (
    FlowRecord,
    LiveFlow,
    LiveOptionChain,
    LiveSnapshot,
    LiveSpotPrice,
    LiveVix,
    OptionRecord,
)
from market_collector.options.expiry import next_expiry
from market_collector.options.strikes import categorize_by_bands, compute_bands

logger = logging.getLogger(__name__)

# snapshot slot names, also used as the prefix of error entries
SLOTS = ("spotPrice", "optionChain", "vix", "flow")


def _is_empty(payload: Any) -> bool:
    return payload is None or payload == [] or payload == {} or payload == ""


def _first_row(payload: Any, exchange: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Quote endpoints answer with a dict or a list of dicts (one per exchange)."""
    if isinstance(payload, Mapping):
        return dict(payload)
    if isinstance(payload, list):
        rows = [r for r in payload if isinstance(r, Mapping)]
        if not rows:
            return None
        if exchange:
            for row in rows:
                if str(row.get("exchange_code", "")).upper() == exchange.upper():
                    return dict(row)
        return dict(rows[0])
    return None


def _pick_number(row: Mapping[str, Any], keys) -> Optional[float]:
    for key in keys:
        value = row.get(key)
        if value is None or value == "":
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def _reason(exc: BaseException) -> str:
    if isinstance(exc, FetchError):
        return str(exc.reason)
    return str(exc) or type(exc).__name__


class LiveCollector(BaseCollector):
    """
    Point-in-time reads of spot, option chain, VIX and FII/DII flow.

    ``snapshot`` runs the four reads concurrently; each can fail on its own
    without affecting the others.
    """

    async def fetch_spot_price(self) -> Optional[LiveSpotPrice]:
        logger.info("Fetching current spot price for %s...", self.symbol)
        params = {
            "stock_code": self.symbol,
            "exchange_code": self.instrument.exchange,
            "product_type": "cash",
        }
        payload = await self.fetch_payload("spotPrice", self.endpoints.quotes, params)
        if _is_empty(payload):
            logger.info("No quote returned for %s", self.symbol)
            return None

        row = _first_row(payload, self.instrument.exchange)
        price = _pick_number(row or {}, ("ltp", "last_traded_price"))
        if price is None:
            raise FetchError("spotPrice", "quote payload has no last traded price")

        logger.info("Current spot price: %s", price)
        return LiveSpotPrice(symbol=self.symbol, price=price, timestamp=self.clock(), raw=row)

    async def fetch_option_chain(self) -> Optional[LiveOptionChain]:
        """
        Current-expiry option chain split into the narrow and wide bands.

        Makes its own spot request to centre the bands, so under a fast
        market its spot can differ from the sibling spot read in a snapshot.
        """
        logger.info("Fetching current option chain for %s...", self.symbol)
        spot = await self.fetch_spot_price()
        if spot is None:
            raise FetchError("optionChain", "no spot price available to compute strike bands")

        bands = compute_bands(
            spot.price, self.config.spot_range_percent_1, self.config.spot_range_percent_2
        )
        expiry = next_expiry(self.today())
        params = {
            "stock_code": self.symbol,
            "exchange_code": self.instrument.exchange,
            "product_type": "options",
            "expiry_date": expiry.isoformat(),
            "right": "others",
        }
        payload = await self.fetch_payload("optionChain", self.endpoints.option_chain, params)
        options = parse_records(OptionRecord, payload, "optionChain")
        chain = categorize_by_bands(options, bands.band1, bands.band2)

        logger.info("Retrieved option chain with %d total options", chain.total)
        return LiveOptionChain(
            spot_price=spot.price,
            timestamp=self.clock(),
            expiry=expiry,
            bands=bands,
            in_band1=chain.in_band1,
            in_band2=chain.in_band2,
            total=chain.total,
        )

    async def fetch_vix(self) -> Optional[LiveVix]:
        logger.info("Fetching current VIX level...")
        payload = await self.fetch_payload("vix", self.endpoints.vix_data)
        if _is_empty(payload):
            return None

        row = _first_row(payload)
        level = _pick_number(row or {}, ("current_value", "ltp", "vix"))
        logger.info("Current VIX: %s", level)
        return LiveVix(vix=level, timestamp=self.clock(), raw=row)

    async def fetch_flow(self) -> Optional[LiveFlow]:
        logger.info("Fetching current FII/DII data...")
        params = {"stock_code": self.symbol, "date": self.today().isoformat()}
        payload = await self.fetch_payload("flow", self.endpoints.participant_data, params)
        if _is_empty(payload):
            return None

        records = parse_records(FlowRecord, payload, "flow")
        return LiveFlow(symbol=self.symbol, timestamp=self.clock(), records=records)

    async def snapshot(self) -> LiveSnapshot:
        logger.info("Taking live data snapshot...")
        timestamp = self.clock()
        values: Dict[str, Any] = dict.fromkeys(SLOTS)
        errors: List[str] = []

        try:
            outcomes = await asyncio.gather(
                self.fetch_spot_price(),
                self.fetch_option_chain(),
                self.fetch_vix(),
                self.fetch_flow(),
                return_exceptions=True,
            )
            for slot, outcome in zip(SLOTS, outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning("Live %s fetch failed: %s", slot, _reason(outcome))
                    errors.append(f"{slot}: {_reason(outcome)}")
                else:
                    values[slot] = outcome

            spot, chain = values["spotPrice"], values["optionChain"]
            if spot is not None and chain is not None and spot.price != chain.spot_price:
                logger.debug(
                    "Spot moved between reads: quote=%s option-chain=%s",
                    spot.price,
                    chain.spot_price,
                )
        except Exception as e:
            logger.exception("Error in live data snapshot")
            errors.append(str(e) or type(e).__name__)

        return LiveSnapshot(
            timestamp=timestamp,
            symbol=self.symbol,
            spot_price=values["spotPrice"],
            option_chain=values["optionChain"],
            vix=values["vix"],
            flow=values["flow"],
            errors=errors,
        )

    async def collect(self) -> LiveSnapshot:
        return await self.snapshot()
