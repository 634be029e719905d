from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ConfigValidationError(ValueError):
    """Raised when a collector configuration cannot be loaded or is inconsistent."""

    pass


# ============================================================
# Brokerage API access
# ============================================================


class ApiSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = "https://api.icicidirect.com/breezeapi/api/v1"
    api_key: Optional[str] = None
    secret_key: Optional[str] = None
    session_token: Optional[str] = None
    timeout_seconds: float = Field(default=30.0, gt=0.0)


class EndpointSettings(BaseModel):
    """
    Relative paths of the endpoints the collectors talk to.
    """

    model_config = ConfigDict(extra="forbid")

    login: str = "/customer/authentication"
    profile: str = "/customer/profile"
    market_status: str = "/marketdata/status"
    historical_data: str = "/historicalcharts"
    option_chain: str = "/optionchain"
    quotes: str = "/quotes"
    live_feeds: str = "/livestreaming"
    market_data: str = "/marketdata"
    indices: str = "/indices"
    participant_data: str = "/participantwise"
    vix_data: str = "/vixdata"


# ============================================================
# Output settings
# ============================================================


class OutputSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    directory: str = "data-output"
    write_html_report: bool = False


# ============================================================
# Top-level CollectorConfig
# ============================================================


class CollectorConfig(BaseModel):
    """
    Run configuration. Read once at startup and treated as immutable.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    symbol: str = "ITC"
    exchange: str = "NSE"

    historical_years: int = Field(default=3, gt=0)
    spot_range_percent_1: float = Field(default=5.0, gt=0.0, lt=100.0)
    spot_range_percent_2: float = Field(default=10.0, gt=0.0, lt=100.0)
    refresh_interval_minutes: float = Field(default=5.0, gt=0.0)

    # historical sampling / throttling
    request_delay_seconds: float = Field(default=1.0, ge=0.0)
    sample_every: int = Field(default=30, gt=0)
    max_samples: int = Field(default=36, gt=0)

    api: ApiSettings = Field(default_factory=ApiSettings)
    endpoints: EndpointSettings = Field(default_factory=EndpointSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)

    @model_validator(mode="after")
    def check_band_nesting(self) -> "CollectorConfig":
        if self.spot_range_percent_2 <= self.spot_range_percent_1:
            raise ValueError(
                "spot_range_percent_2 must be greater than spot_range_percent_1 "
                f"(got {self.spot_range_percent_1} and {self.spot_range_percent_2})"
            )
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.api.api_key and self.api.secret_key)
