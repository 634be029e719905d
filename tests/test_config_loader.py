from __future__ import annotations

from pathlib import Path
import json

import pytest

from market_collector.config.loader import (
    ENV_FIELDS,
    config_from_env,
    load_config,
    load_config_from_env,
    override_config,
)
from market_collector.config.models import CollectorConfig, ConfigValidationError


def _isolate_env(monkeypatch):
    # set-then-delete so teardown removes anything a .env file adds
    for var in ENV_FIELDS:
        monkeypatch.setenv(var, "placeholder")
        monkeypatch.delenv(var)


def test_load_config_yaml(tmp_path: Path):
    cfg_path = tmp_path / "cfg.yaml"
    cfg_path.write_text(
        """
symbol: RELIANCE
exchange: NSE
historical_years: 2
spot_range_percent_1: 3
spot_range_percent_2: 8
api:
  api_key: key
  secret_key: secret
output:
  directory: /tmp/out
"""
    )
    cfg = load_config(cfg_path)
    assert isinstance(cfg, CollectorConfig)
    assert cfg.symbol == "RELIANCE"
    assert cfg.historical_years == 2
    assert cfg.spot_range_percent_2 == 8.0
    assert cfg.output.directory == "/tmp/out"
    assert cfg.has_credentials
    assert cfg.endpoints.option_chain == "/optionchain"


def test_load_config_json(tmp_path: Path):
    cfg_path = tmp_path / "cfg.json"
    data = {"symbol": "TCS", "refresh_interval_minutes": 1, "endpoints": {"quotes": "/v2/quotes"}}
    cfg_path.write_text(json.dumps(data))
    cfg = load_config(cfg_path)
    assert cfg.symbol == "TCS"
    assert cfg.refresh_interval_minutes == 1.0
    assert cfg.endpoints.quotes == "/v2/quotes"
    assert not cfg.has_credentials


def test_defaults():
    cfg = CollectorConfig()
    assert (cfg.symbol, cfg.exchange) == ("ITC", "NSE")
    assert (cfg.spot_range_percent_1, cfg.spot_range_percent_2) == (5.0, 10.0)
    assert cfg.historical_years == 3
    assert cfg.refresh_interval_minutes == 5.0


@pytest.mark.parametrize("p1,p2", [(10, 5), (5, 5)])
def test_bands_must_nest(tmp_path: Path, p1, p2):
    cfg_path = tmp_path / "cfg.json"
    cfg_path.write_text(json.dumps({"spot_range_percent_1": p1, "spot_range_percent_2": p2}))
    with pytest.raises(ConfigValidationError, match="spot_range_percent_2"):
        load_config(cfg_path)


def test_unknown_keys_rejected(tmp_path: Path):
    cfg_path = tmp_path / "cfg.yaml"
    cfg_path.write_text("symbol: ITC\nsymbl: typo\n")
    with pytest.raises(ConfigValidationError):
        load_config(cfg_path)


def test_missing_and_unsupported_files(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")

    other = tmp_path / "cfg.toml"
    other.write_text("symbol = 'ITC'")
    with pytest.raises(ConfigValidationError):
        load_config(other)


def test_config_is_frozen():
    cfg = CollectorConfig()
    with pytest.raises(Exception):
        cfg.symbol = "TCS"


def test_config_from_env_mapping():
    raw = config_from_env(
        {
            "BREEZE_API_KEY": "k",
            "BREEZE_SECRET_KEY": "s",
            "TARGET_SYMBOL": "INFY",
            "SPOT_RANGE_PERCENT_1": "2",
            "OUTPUT_DIR": "",
            "UNRELATED": "x",
        }
    )
    assert raw == {
        "api": {"api_key": "k", "secret_key": "s"},
        "symbol": "INFY",
        "spot_range_percent_1": "2",
    }


def test_load_config_from_env_file(tmp_path: Path, monkeypatch):
    _isolate_env(monkeypatch)
    env_file = tmp_path / ".env"
    env_file.write_text(
        "BREEZE_API_KEY=abc\n"
        "BREEZE_SECRET_KEY=xyz\n"
        "TARGET_SYMBOL=HDFCBANK\n"
        "HISTORICAL_YEARS=1\n"
        "REFRESH_INTERVAL_MINUTES=2\n"
    )
    cfg = load_config_from_env(env_file, overrides={"symbol": "SBIN", "output": {"directory": "x"}})

    assert cfg.api.api_key == "abc"
    assert cfg.has_credentials
    assert cfg.symbol == "SBIN"
    assert cfg.historical_years == 1
    assert cfg.refresh_interval_minutes == 2.0
    assert cfg.output.directory == "x"


def test_process_env_wins_over_env_file(tmp_path: Path, monkeypatch):
    _isolate_env(monkeypatch)
    monkeypatch.setenv("EXCHANGE", "BSE")
    env_file = tmp_path / ".env"
    env_file.write_text("EXCHANGE=NSE\n")

    assert load_config_from_env(env_file).exchange == "BSE"


def test_bad_env_value(tmp_path: Path, monkeypatch):
    _isolate_env(monkeypatch)
    monkeypatch.setenv("SPOT_RANGE_PERCENT_1", "12")
    with pytest.raises(ConfigValidationError):
        load_config_from_env(tmp_path / "missing.env")


def test_override_config_validates():
    cfg = CollectorConfig()
    updated = override_config(cfg, {"refresh_interval_minutes": 2, "output": {"directory": "elsewhere"}})
    assert updated.refresh_interval_minutes == 2.0
    assert updated.output.directory == "elsewhere"
    assert updated.output.write_html_report is False
    assert cfg.refresh_interval_minutes == 5.0

    with pytest.raises(ConfigValidationError):
        override_config(cfg, {"refresh_interval_minutes": 0})
    with pytest.raises(ConfigValidationError):
        override_config(cfg, {"spot_range_percent_2": 4})
