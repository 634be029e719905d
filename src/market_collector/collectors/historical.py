from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import polars as pl

from market_collector.collectors.base import (
    BaseCollector,
    FetchError,
    parse_records,
    utcnow,
)
from market_collector.config.models import CollectorConfig
from market_collector.data.schemas import (
    CollectionResult,
    FlowRecord,
    OptionChainDay,
    OptionRecord,
    SpotPriceRecord,
    VixRecord,
)
from market_collector.options.expiry import next_expiry
from market_collector.options.strikes import compute_bands, filter_by_band
from market_collector.transport.result import RequestFn

logger = logging.getLogger(__name__)

DATE_FMT = "%Y-%m-%d"


def years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year - years, day=28)


def sample_dates(
    series: Sequence[SpotPriceRecord], every: int = 30, limit: int = 36
) -> List[SpotPriceRecord]:
    """
    Pick every ``every``-th trading day in chronological order, at most ``limit``.

    The series is ordered by date and de-duplicated first, so the picks are
    strictly increasing in date whatever order the API returned.
    """
    if not series:
        return []

    frame = pl.DataFrame(
        {
            "idx": list(range(len(series))),
            "trade_date": [r.trade_date for r in series],
        }
    )
    picked = (
        frame.sort(["trade_date", "idx"])
        .unique(subset="trade_date", keep="first", maintain_order=True)
        .gather_every(every)
        .head(limit)
    )
    return [series[i] for i in picked["idx"].to_list()]


class HistoricalCollector(BaseCollector):
    """
    Look-back collection of spot, VIX and FII/DII series plus sampled
    option chains.

    Option-chain requests are serialized with a fixed pause between them;
    that pause is the only rate limiting applied.
    """

    def __init__(
        self,
        request: RequestFn,
        config: CollectorConfig,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(request, config, clock=clock, today=today)
        self.sleep = sleep

    def window(self) -> tuple[str, str]:
        end = self.today()
        start = years_before(end, self.config.historical_years)
        return start.strftime(DATE_FMT), end.strftime(DATE_FMT)

    # ------------------------------------------------------------------
    # Individual series
    # ------------------------------------------------------------------

    async def fetch_spot_history(self) -> List[SpotPriceRecord]:
        logger.info("Fetching historical spot prices for %s...", self.symbol)
        start, end = self.window()
        params = {
            "stock_code": self.symbol,
            "exchange_code": self.instrument.exchange,
            "product_type": "cash",
            "expiry_date": "",
            "right": "",
            "strike_price": "",
            "from_date": start,
            "to_date": end,
            "interval": "1day",
        }
        payload = await self.fetch_payload("spotPrices", self.endpoints.historical_data, params)
        records = parse_records(SpotPriceRecord, payload, "spotPrices")
        logger.info("Retrieved %d historical price records", len(records))
        return records

    async def fetch_vix_history(self) -> List[VixRecord]:
        logger.info("Fetching historical VIX data...")
        start, end = self.window()
        params = {"from_date": start, "to_date": end, "interval": "1day"}
        payload = await self.fetch_payload("vixData", self.endpoints.vix_data, params)
        records = parse_records(VixRecord, payload, "vixData")
        logger.info("Retrieved %d VIX records", len(records))
        return records

    async def fetch_flow_history(self) -> List[FlowRecord]:
        logger.info("Fetching FII/DII participation data...")
        start, end = self.window()
        params = {"stock_code": self.symbol, "from_date": start, "to_date": end}
        payload = await self.fetch_payload("flowData", self.endpoints.participant_data, params)
        records = parse_records(FlowRecord, payload, "flowData")
        logger.info("Retrieved %d FII/DII records", len(records))
        return records

    async def fetch_option_chain(self, spot_price: float, trade_date: date) -> OptionChainDay:
        """Option chain on ``trade_date`` for its monthly expiry, cut to the wide band."""
        bands = compute_bands(
            spot_price, self.config.spot_range_percent_1, self.config.spot_range_percent_2
        )
        expiry = next_expiry(trade_date)
        logger.info(
            "Fetching option chain for %s on %s (expiry %s); bands %s-%s / %s-%s",
            self.symbol,
            trade_date,
            expiry,
            bands.band1.lower,
            bands.band1.upper,
            bands.band2.lower,
            bands.band2.upper,
        )

        day = trade_date.strftime(DATE_FMT)
        params = {
            "stock_code": self.symbol,
            "exchange_code": self.instrument.exchange,
            "product_type": "options",
            "expiry_date": expiry.strftime(DATE_FMT),
            "right": "others",
            "strike_price": "",
            "from_date": day,
            "to_date": day,
        }
        payload = await self.fetch_payload("optionChain", self.endpoints.option_chain, params)
        options = parse_records(OptionRecord, payload, "optionChain")
        in_band = filter_by_band(options, bands.band2.lower, bands.band2.upper)
        logger.info("Retrieved option chain with %d strikes in range", len(in_band))
        return OptionChainDay(
            trade_date=trade_date, spot_price=spot_price, expiry=expiry, options=in_band
        )

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def _stage(self, result: CollectionResult, kind: str, fetch) -> Optional[list]:
        try:
            return await fetch()
        except FetchError as e:
            logger.warning("Failed to fetch %s: %s", kind, e.reason)
            result.add_error(str(e))
            return None

    async def collect_option_chains(
        self, result: CollectionResult, spot_prices: Sequence[SpotPriceRecord]
    ) -> None:
        samples = sample_dates(
            spot_prices, every=self.config.sample_every, limit=self.config.max_samples
        )
        logger.info("Sampling option chains for %d key dates...", len(samples))

        for i, sample in enumerate(samples):
            if i > 0:
                await self.sleep(self.config.request_delay_seconds)

            if sample.close is None:
                result.add_error(f"optionChain: no close price on {sample.trade_date}")
                continue
            try:
                day = await self.fetch_option_chain(sample.close, sample.trade_date)
            except FetchError as e:
                logger.warning("Failed to fetch option chain for %s: %s", sample.trade_date, e.reason)
                result.add_error(f"{e} ({sample.trade_date})")
                continue
            result.option_chains.append(day)

    async def collect_all(self) -> CollectionResult:
        logger.info("Starting historical data collection for %s...", self.symbol)
        result = CollectionResult(started_at=self.clock())

        try:
            result.spot_prices = await self._stage(result, "spotPrices", self.fetch_spot_history)
            result.vix_data = await self._stage(result, "vixData", self.fetch_vix_history)
            result.flow_data = await self._stage(result, "flowData", self.fetch_flow_history)

            if result.spot_prices:
                await self.collect_option_chains(result, result.spot_prices)
        except Exception as e:
            logger.exception("Error in historical data collection")
            result.add_error(str(e) or type(e).__name__)
        finally:
            result.finished_at = self.clock()

        return result

    async def collect(self) -> CollectionResult:
        return await self.collect_all()

