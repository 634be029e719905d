# src/market_collector/data/schemas.py
from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ============================================================
# Coercion helpers for loosely typed API payloads
# ============================================================


def _to_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        if isinstance(v, (int, float)):
            return float(v)
        return float(str(v).replace(",", "").strip())
    except (ValueError, OverflowError):
        return None


def _to_int(v: Any) -> Optional[int]:
    f = _to_float(v)
    if f is None or not math.isfinite(f):
        return None
    return int(f)


def _to_date(v: Any) -> Any:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, str) and len(v) >= 10:
        return v[:10]
    return v


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ============================================================
# Instrument
# ============================================================


class Instrument(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    exchange: str


# ============================================================
# Historical series
# ============================================================


class SpotPriceRecord(_Record):
    trade_date: date = Field(
        ..., validation_alias=AliasChoices("trade_date", "date", "datetime")
    )
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[int] = None

    @field_validator("trade_date", mode="before")
    def parse_trade_date(cls, v):
        return _to_date(v)

    @field_validator("open", "high", "low", "close", mode="before")
    def coerce_price(cls, v):
        return _to_float(v)

    @field_validator("volume", mode="before")
    def coerce_volume(cls, v):
        return _to_int(v)


class VixRecord(_Record):
    trade_date: date = Field(
        ..., validation_alias=AliasChoices("trade_date", "date", "datetime")
    )
    vix: Optional[float] = Field(
        None, validation_alias=AliasChoices("vix", "current_value", "ltp")
    )
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None

    @field_validator("trade_date", mode="before")
    def parse_trade_date(cls, v):
        return _to_date(v)

    @field_validator("vix", "open", "high", "low", "close", mode="before")
    def coerce_level(cls, v):
        return _to_float(v)


class FlowRecord(_Record):
    """Daily FII/DII cash-market participation (values in crores)."""

    trade_date: date = Field(
        ..., validation_alias=AliasChoices("trade_date", "date", "datetime")
    )
    fii_buy: Optional[float] = None
    fii_sell: Optional[float] = None
    fii_net: Optional[float] = None
    dii_buy: Optional[float] = None
    dii_sell: Optional[float] = None
    dii_net: Optional[float] = None

    @field_validator("trade_date", mode="before")
    def parse_trade_date(cls, v):
        return _to_date(v)

    @field_validator(
        "fii_buy", "fii_sell", "fii_net", "dii_buy", "dii_sell", "dii_net", mode="before"
    )
    def coerce_amount(cls, v):
        return _to_float(v)


# ============================================================
# Options
# ============================================================


class StrikeBand(BaseModel):
    model_config = ConfigDict(frozen=True)

    lower: int
    upper: int

    def contains(self, strike: float) -> bool:
        return self.lower <= strike <= self.upper


class BandPair(BaseModel):
    """Narrow (band1) and wide (band2) strike bands around one spot price."""

    model_config = ConfigDict(frozen=True)

    band1: StrikeBand
    band2: StrikeBand


class OptionRecord(_Record):
    """
    One option contract quote. ``strike`` is None when the source sent
    something non-numeric; such records never survive band filtering.
    """

    strike: Optional[float] = Field(
        None, validation_alias=AliasChoices("strike", "strike_price")
    )
    right: Optional[Literal["call", "put"]] = None
    premium: Optional[float] = Field(
        None, validation_alias=AliasChoices("premium", "ltp", "last_traded_price")
    )
    implied_volatility: Optional[float] = Field(
        None, validation_alias=AliasChoices("implied_volatility", "iv")
    )
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None
    volume: Optional[int] = Field(
        None, validation_alias=AliasChoices("volume", "total_quantity_traded")
    )
    open_interest: Optional[int] = Field(
        None, validation_alias=AliasChoices("open_interest", "oi")
    )

    @field_validator(
        "strike", "premium", "implied_volatility", "delta", "gamma", "theta", "vega",
        mode="before",
    )
    def coerce_number(cls, v):
        return _to_float(v)

    @field_validator("volume", "open_interest", mode="before")
    def coerce_count(cls, v):
        return _to_int(v)

    @field_validator("right", mode="before")
    def normalize_right(cls, v):
        if v is None:
            return None
        v = str(v).strip().lower()
        if v in {"call", "ce", "c"}:
            return "call"
        if v in {"put", "pe", "p"}:
            return "put"
        return None


class OptionChainDay(BaseModel):
    """Option chain sampled on one historical date, filtered to the wide band."""

    trade_date: date
    spot_price: float
    expiry: date
    options: List[OptionRecord] = Field(default_factory=list)


class CategorizedChain(BaseModel):
    in_band1: List[OptionRecord] = Field(default_factory=list)
    in_band2: List[OptionRecord] = Field(default_factory=list)
    total: int = 0


# ============================================================
# Live readings
# ============================================================


class LiveSpotPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    price: float
    timestamp: datetime
    raw: Optional[Dict[str, Any]] = None


class LiveOptionChain(BaseModel):
    model_config = ConfigDict(frozen=True)

    spot_price: float
    timestamp: datetime
    expiry: date
    bands: BandPair
    in_band1: List[OptionRecord] = Field(default_factory=list)
    in_band2: List[OptionRecord] = Field(default_factory=list)
    total: int = 0


class LiveVix(BaseModel):
    model_config = ConfigDict(frozen=True)

    vix: Optional[float]
    timestamp: datetime
    raw: Optional[Dict[str, Any]] = None


class LiveFlow(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    timestamp: datetime
    records: List[FlowRecord] = Field(default_factory=list)


class LiveSnapshot(BaseModel):
    """
    Point-in-time composite of the four live reads.

    A field is None when its sub-fetch failed (and ``errors`` says why) or
    when the source returned nothing (no error entry).
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    symbol: str
    spot_price: Optional[LiveSpotPrice] = None
    option_chain: Optional[LiveOptionChain] = None
    vix: Optional[LiveVix] = None
    flow: Optional[LiveFlow] = None
    errors: List[str] = Field(default_factory=list)


# ============================================================
# Historical run result
# ============================================================


class CollectionResult(BaseModel):
    """Accumulates a historical run; filled in as each stage completes."""

    spot_prices: Optional[List[SpotPriceRecord]] = None
    vix_data: Optional[List[VixRecord]] = None
    flow_data: Optional[List[FlowRecord]] = None
    option_chains: List[OptionChainDay] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None
