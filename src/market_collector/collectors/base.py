# src/market_collector/collectors/base.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from market_collector.config.models import CollectorConfig
from market_collector.data.schemas import Instrument
from market_collector.transport.result import (
    Failure,
    RequestFn,
    envelope_error,
    unwrap_payload,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class FetchError(Exception):
    """A single data kind could not be fetched; recorded, never fatal."""

    def __init__(self, kind: str, reason: Any, status: Optional[int] = None):
        self.kind = kind
        self.reason = reason
        self.status = status
        super().__init__(f"{kind}: {reason}")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_records(model: Type[RecordT], payload: Any, kind: str) -> List[RecordT]:
    """
    Validate a list payload into ``model`` records.

    Rows that fail validation are skipped with a warning; an unexpected
    payload shape is a FetchError.
    """
    if payload is None:
        return []
    if isinstance(payload, Mapping):
        payload = [payload]
    if not isinstance(payload, list):
        raise FetchError(kind, f"unexpected payload type {type(payload).__name__}")

    records: List[RecordT] = []
    skipped = 0
    for row in payload:
        try:
            records.append(model.model_validate(row))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.warning("%s: skipped %d malformed rows", kind, skipped)
    return records


class BaseCollector(ABC):
    """Abstract base for collectors talking to one request capability."""

    def __init__(
        self,
        request: RequestFn,
        config: CollectorConfig,
        clock: Callable[[], datetime] = utcnow,
        today: Callable[[], date] = date.today,
    ):
        self.request = request
        self.config = config
        self.endpoints = config.endpoints
        self.instrument = Instrument(symbol=config.symbol, exchange=config.exchange)
        self.clock = clock
        self.today = today

    @property
    def symbol(self) -> str:
        return self.instrument.symbol

    async def fetch_payload(
        self, kind: str, endpoint: str, params: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """Issue one request; return the unwrapped payload or raise FetchError."""
        result = await self.request(endpoint, params)
        if isinstance(result, Failure):
            raise FetchError(kind, result.error, result.status)
        failed = envelope_error(result.data)
        if failed is not None:
            raise FetchError(kind, *failed)
        return unwrap_payload(result.data)

    @abstractmethod
    async def collect(self):
        """Run one full collection and return its result object."""
        pass
