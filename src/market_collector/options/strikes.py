"""
Strike band helpers.

Bands are computed independently per percentage; the narrow band is only
nested inside the wide one because configuration enforces percent1 < percent2.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, List, Mapping, Optional, Union

from market_collector.data.schemas import (
    BandPair,
    CategorizedChain,
    OptionRecord,
    StrikeBand,
)

OptionLike = Union[OptionRecord, Mapping[str, Any]]


def round_strike(value: float) -> int:
    """Round half away from zero to the nearest integer strike."""
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


def compute_band(spot_price: float, percent: float) -> StrikeBand:
    return StrikeBand(
        lower=round_strike(spot_price * (1 - percent / 100)),
        upper=round_strike(spot_price * (1 + percent / 100)),
    )


def compute_bands(spot_price: float, percent1: float, percent2: float) -> BandPair:
    return BandPair(
        band1=compute_band(spot_price, percent1),
        band2=compute_band(spot_price, percent2),
    )


def strike_of(option: OptionLike) -> Optional[float]:
    """Numeric strike of an option, or None when missing / non-numeric."""
    if isinstance(option, OptionRecord):
        raw = option.strike
    elif isinstance(option, Mapping):
        raw = option.get("strike", option.get("strike_price"))
    else:
        return None

    if raw is None or isinstance(raw, bool):
        return None
    try:
        strike = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(strike):
        return None
    return strike


def filter_by_band(options: Optional[Iterable[OptionLike]], lower: float, upper: float) -> List[OptionLike]:
    """Keep options with ``lower <= strike <= upper``; unparseable strikes are dropped."""
    if not options:
        return []
    kept = []
    for option in options:
        strike = strike_of(option)
        if strike is not None and lower <= strike <= upper:
            kept.append(option)
    return kept


def categorize_by_bands(
    options: Optional[Iterable[OptionRecord]],
    band1: StrikeBand,
    band2: StrikeBand,
) -> CategorizedChain:
    if not options:
        return CategorizedChain()

    options = list(options)
    in_band1: List[OptionRecord] = []
    in_band2: List[OptionRecord] = []
    for option in options:
        strike = strike_of(option)
        if strike is None:
            continue
        if band1.contains(strike):
            in_band1.append(option)
        if band2.contains(strike):
            in_band2.append(option)

    return CategorizedChain(in_band1=in_band1, in_band2=in_band2, total=len(options))
