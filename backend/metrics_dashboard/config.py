"""Runtime settings for the dashboard service."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:8000"

# field name -> environment variable
_ENV_OVERRIDES: Dict[str, str] = {
    "api_base_url": "METRICS_API_BASE_URL",
    "poll_interval": "METRICS_POLL_INTERVAL",
    "include_curves": "METRICS_INCLUDE_CURVES",
    "request_timeout": "METRICS_API_TIMEOUT",
    "page_size": "METRICS_PAGE_SIZE",
    "log_level": "LOG_LEVEL",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class DashboardSettings(BaseModel):
    """Settings resolved from YAML defaults and environment overrides."""

    api_base_url: str = DEFAULT_API_BASE_URL
    poll_interval: float = 30.0
    include_curves: bool = True
    request_timeout: Optional[float] = None
    page_size: int = 10
    log_level: str = "INFO"

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if not cleaned:
            raise ValueError("api_base_url must not be empty")
        return cleaned

    @field_validator("poll_interval")
    @classmethod
    def _non_negative_interval(cls, value: float) -> float:
        return max(float(value), 0.0)

    @field_validator("request_timeout")
    @classmethod
    def _positive_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            return None
        return value

    @field_validator("page_size")
    @classmethod
    def _positive_page_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("page_size must be at least 1")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


def _coerce_env_value(field: str, raw_value: str) -> Any:
    value = raw_value.strip()
    if field == "include_curves":
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{_ENV_OVERRIDES[field]} must be a boolean, got {raw_value!r}")
    if field == "request_timeout" and value.lower() in {"", "none", "null"}:
        return None
    return value


def _load_yaml_defaults(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Dashboard config not found at: {path}")

    with path.open("r", encoding="utf-8") as config_file:
        try:
            loaded = yaml.safe_load(config_file) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Unable to parse YAML file: {path}") from exc

    if not isinstance(loaded, dict):
        raise ValueError(f"Dashboard config must be a mapping: {path}")

    unknown = sorted(set(loaded) - set(DashboardSettings.model_fields))
    if unknown:
        logger.warning("Ignoring unknown dashboard config keys: %s", ", ".join(unknown))
    return {key: value for key, value in loaded.items() if key in DashboardSettings.model_fields}


def load_settings(
    config_path: Optional[Path | str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DashboardSettings:
    """Build settings from an optional YAML file and the environment.

    ``config_path`` falls back to ``DASHBOARD_CONFIG``. Environment variables
    always win over YAML values.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    values: Dict[str, Any] = {}
    path_value = config_path or environ.get("DASHBOARD_CONFIG")
    if path_value:
        values.update(_load_yaml_defaults(Path(path_value)))

    for field, env_name in _ENV_OVERRIDES.items():
        raw_value = environ.get(env_name)
        if raw_value is None:
            continue
        values[field] = _coerce_env_value(field, raw_value)

    try:
        return DashboardSettings(**values)
    except ValidationError as exc:
        raise ValueError(f"Invalid dashboard settings: {exc}") from exc
