from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class Success:
    """Request succeeded; ``data`` is the decoded payload."""

    data: Any
    status: int = 200

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Request failed; ``error`` describes why (server message or transport error)."""

    error: Any
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False


RequestResult = Union[Success, Failure]

# request(endpoint, params) -> RequestResult
RequestFn = Callable[[str, Optional[Mapping[str, Any]]], Awaitable[RequestResult]]


def unwrap_payload(data: Any) -> Any:
    """
    Strip the Breeze ``{"Success": ..., "Status": ..., "Error": ...}`` envelope.

    Payloads without the envelope are returned unchanged.
    """
    if isinstance(data, dict) and "Success" in data:
        return data["Success"]
    return data


def envelope_error(data: Any) -> Optional[Tuple[Any, Optional[int]]]:
    """
    ``(error, status)`` when a Breeze envelope reports a failure despite an
    HTTP 2xx answer, else None.

    A failure is a non-empty ``Error`` field or a ``Status`` outside 2xx.
    """
    if not isinstance(data, dict) or "Success" not in data:
        return None
    error = data.get("Error")
    status = data.get("Status")
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    if error or (status is not None and not 200 <= status < 300):
        return (error or f"status {status}", status)
    return None
