from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import pytest

from market_collector.config.models import CollectorConfig, EndpointSettings
from market_collector.transport.result import Failure, RequestResult, Success

ENDPOINTS = EndpointSettings()

Handler = Callable[[Optional[Mapping[str, Any]]], Any]


class FakeApi:
    """
    Stand-in for the transport ``request`` capability.

    Each route maps an endpoint to a RequestResult, an exception to raise,
    or a callable(params) returning either.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def calls_to(self, endpoint: str) -> List[Dict[str, Any]]:
        return [params for ep, params in self.calls if ep == endpoint]

    async def request(
        self, endpoint: str, params: Optional[Mapping[str, Any]] = None
    ) -> RequestResult:
        self.calls.append((endpoint, dict(params or {})))
        route = self.routes.get(endpoint)
        if route is None:
            return Failure(error="Not Found", status=404)
        if callable(route):
            route = route(params)
        if isinstance(route, BaseException):
            raise route
        return route


def make_spot_series(n: int, start: date = date(2022, 1, 3), close: float = 400.0) -> List[Dict[str, Any]]:
    return [
        {
            "datetime": f"{(start + timedelta(days=i)).isoformat()} 00:00:00",
            "open": close,
            "high": close + 5,
            "low": close - 5,
            "close": close + i * 0.1,
            "volume": 1000 + i,
        }
        for i in range(n)
    ]


def make_chain(strikes, right: str = "Call") -> List[Dict[str, Any]]:
    return [
        {
            "strike_price": str(s),
            "right": right,
            "ltp": "12.5",
            "implied_volatility": "21.3",
            "delta": "0.45",
            "open_interest": "1500",
            "volume": "300",
        }
        for s in strikes
    ]


@pytest.fixture
def config() -> CollectorConfig:
    return CollectorConfig(
        symbol="ITC",
        exchange="NSE",
        historical_years=3,
        spot_range_percent_1=5,
        spot_range_percent_2=10,
        refresh_interval_minutes=5,
    )


@pytest.fixture
def endpoints() -> EndpointSettings:
    return ENDPOINTS


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2024, 6, 10, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def live_routes() -> Dict[str, Any]:
    """Healthy answers for every live endpoint."""
    return {
        ENDPOINTS.quotes: Success({"Success": [{"exchange_code": "NSE", "ltp": "400"}], "Status": 200}),
        ENDPOINTS.option_chain: Success({"Success": make_chain([350, 380, 420, 430, 450])}),
        ENDPOINTS.vix_data: Success({"current_value": "13.2"}),
        ENDPOINTS.participant_data: Success(
            [{"date": "2024-06-10", "fii_buy": "1000", "fii_sell": "800", "fii_net": "200"}]
        ),
    }
