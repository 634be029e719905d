from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from market_collector.config.models import CollectorConfig, ConfigValidationError

# env var -> (section, field); section None means top level
ENV_FIELDS: Dict[str, tuple[Optional[str], str]] = {
    "BREEZE_API_KEY": ("api", "api_key"),
    "BREEZE_SECRET_KEY": ("api", "secret_key"),
    "BREEZE_SESSION_TOKEN": ("api", "session_token"),
    "BREEZE_BASE_URL": ("api", "base_url"),
    "TARGET_SYMBOL": (None, "symbol"),
    "EXCHANGE": (None, "exchange"),
    "HISTORICAL_YEARS": (None, "historical_years"),
    "SPOT_RANGE_PERCENT_1": (None, "spot_range_percent_1"),
    "SPOT_RANGE_PERCENT_2": (None, "spot_range_percent_2"),
    "REFRESH_INTERVAL_MINUTES": (None, "refresh_interval_minutes"),
    "OUTPUT_DIR": ("output", "directory"),
}


def _validate(raw: Mapping[str, Any]) -> CollectorConfig:
    try:
        return CollectorConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid CollectorConfig: {e}") from e


def load_config(path: str | Path) -> CollectorConfig:
    """
    Load a CollectorConfig from YAML or JSON.

    Validation (including the band nesting check) happens here, so a bad
    file fails before any request is made.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    text = path.read_text()

    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            raw = yaml.safe_load(text)
        elif path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raise ValueError("Config path must be YAML or JSON.")
    except Exception as e:
        raise ConfigValidationError(f"Failed to parse config: {e}") from e

    return _validate(raw or {})


def config_from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Build a raw config mapping from the environment variables that are set."""
    raw: Dict[str, Any] = {}
    for var, (section, field) in ENV_FIELDS.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        if section is None:
            raw[field] = value
        else:
            raw.setdefault(section, {})[field] = value
    return raw


def _merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config_from_env(
    env_path: str | Path | None = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> CollectorConfig:
    """
    Load configuration from a .env file plus the process environment.

    Values in ``overrides`` (e.g. from a config file or CLI flags) win over
    the environment.
    """
    if env_path is not None:
        load_dotenv(env_path)
    else:
        load_dotenv()

    raw = config_from_env(os.environ)
    if overrides:
        raw = _merge(raw, overrides)
    return _validate(raw)


def override_config(cfg: CollectorConfig, overrides: Mapping[str, Any]) -> CollectorConfig:
    """Copy of ``cfg`` with ``overrides`` merged in, validated like a fresh load."""
    return _validate(_merge(cfg.model_dump(), overrides))
