# tests/options/test_schema.py
from datetime import date

import pytest
from pydantic import ValidationError

from market_collector.data.schemas import (
    FlowRecord,
    LiveSnapshot,
    OptionRecord,
    SpotPriceRecord,
    VixRecord,
)


def test_option_record_from_breeze_row():
    rec = OptionRecord.model_validate(
        {
            "strike_price": "420",
            "right": "Call",
            "ltp": "12.35",
            "implied_volatility": "18.2",
            "open_interest": "1,250",
            "volume": "300.0",
            "stock_code": "ITC",
        }
    )
    assert rec.strike == 420.0
    assert rec.right == "call"
    assert rec.premium == 12.35
    assert rec.implied_volatility == 18.2
    assert rec.open_interest == 1250
    assert rec.volume == 300


@pytest.mark.parametrize("raw,expected", [("Put", "put"), ("PE", "put"), ("ce", "call"), ("others", None)])
def test_option_right_normalized(raw, expected):
    assert OptionRecord.model_validate({"right": raw}).right == expected


def test_non_numeric_strike_parses_to_none():
    assert OptionRecord.model_validate({"strike_price": "--"}).strike is None


def test_spot_record_accepts_breeze_datetime():
    rec = SpotPriceRecord.model_validate(
        {"datetime": "2024-01-05 00:00:00", "open": "401", "close": "405.5", "volume": "12000"}
    )
    assert rec.trade_date == date(2024, 1, 5)
    assert rec.close == 405.5
    assert rec.volume == 12000


def test_spot_record_requires_date():
    with pytest.raises(ValidationError):
        SpotPriceRecord.model_validate({"close": 100})


def test_vix_and_flow_records():
    vix = VixRecord.model_validate({"date": "2024-01-05", "ltp": "13.4", "close": "13.1"})
    flow = FlowRecord.model_validate({"date": "2024-01-05", "fii_net": "-512.3", "dii_net": ""})
    assert vix.vix == 13.4
    assert flow.fii_net == -512.3
    assert flow.dii_net is None


def test_live_snapshot_is_immutable(fixed_clock):
    snap = LiveSnapshot(timestamp=fixed_clock(), symbol="ITC")
    with pytest.raises(ValidationError):
        snap.symbol = "TCS"
