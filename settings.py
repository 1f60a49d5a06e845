from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_API_URL_ENV = "EMISSIONS_API_URL"
_USE_MOCK_ENV = "USE_MOCK_DATA"
_REFRESH_INTERVAL_ENV = "REFRESH_INTERVAL_SECONDS"
_ACTIVITY_WINDOW_ENV = "ACTIVITY_WINDOW_SECONDS"
_FETCH_TIMEOUT_ENV = "FETCH_TIMEOUT_SECONDS"
_MOCK_COUNT_ENV = "MOCK_READING_COUNT"
_WORKER_COUNT_ENV = "REFRESH_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    api_url: Optional[str]
    use_mock_data: bool
    refresh_interval: float
    activity_window: float
    fetch_timeout: float
    mock_reading_count: int
    refresh_workers: int
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if not candidate:
        return default
    return candidate in _TRUTHY


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        api_url=_read_optional_env(_API_URL_ENV, None),
        use_mock_data=_read_bool_env(_USE_MOCK_ENV, False),
        refresh_interval=_read_positive_float(_REFRESH_INTERVAL_ENV, 3.0),
        activity_window=_read_positive_float(_ACTIVITY_WINDOW_ENV, 300.0),
        fetch_timeout=_read_positive_float(_FETCH_TIMEOUT_ENV, 10.0),
        mock_reading_count=_read_positive_int(_MOCK_COUNT_ENV, 25),
        refresh_workers=_read_positive_int(_WORKER_COUNT_ENV, 2),
        log_level=_read_log_level("INFO"),
    )
