"""Collaborators that supply emissions readings to the refresh loop."""

from __future__ import annotations

import logging
import math
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Protocol

import httpx

from models.records import Reading, parse_timestamp
from settings import get_settings

logger = logging.getLogger(__name__)

MOCK_LOCATIONS = (
    "Obinze",
    "Futo Road",
    "Ihiagwa market",
    "Umuchima market",
    "FUTO backgate",
)

_REQUIRED_FIELDS = ("device_id", "location", "CO", "CO2", "timestamp")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DataSourceError(RuntimeError):
    """Raised when readings cannot be fetched or decoded."""


class EmissionsSource(Protocol):
    def fetch_readings(self) -> List[Reading]:
        ...


def _coerce_concentration(value: Any) -> float:
    # Anything unusable becomes NaN so the aggregator can flag it as invalid.
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def parse_reading(payload: Any) -> Reading:
    if not isinstance(payload, dict):
        raise DataSourceError(f"Expected a reading object, got {type(payload).__name__}.")

    missing = [name for name in _REQUIRED_FIELDS if name not in payload]
    if missing:
        raise DataSourceError(f"Reading missing required fields: {', '.join(missing)}")

    timestamp_raw = payload["timestamp"]
    if not isinstance(timestamp_raw, str):
        raise DataSourceError(f"Reading timestamp must be a string, got {timestamp_raw!r}.")
    try:
        timestamp = parse_timestamp(timestamp_raw)
    except ValueError as exc:
        raise DataSourceError(str(exc)) from exc

    return Reading(
        device_id=str(payload["device_id"]),
        location=str(payload["location"]),
        co=_coerce_concentration(payload["CO"]),
        co2=_coerce_concentration(payload["CO2"]),
        timestamp=timestamp,
    )


class HttpEmissionsSource:
    """Fetch readings from a JSON endpoint returning a list of reading objects."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def fetch_readings(self) -> List[Reading]:
        logger.debug("Fetching readings", extra={"url": self.url})
        try:
            response = self._client.get(self.url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text.strip()
            raise DataSourceError(
                f"API request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
            ) from exc
        except httpx.HTTPError as exc:
            raise DataSourceError(f"API request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise DataSourceError("API response is not valid JSON.") from exc

        if not isinstance(payload, list):
            raise DataSourceError("API response must be a JSON list of readings.")

        readings = [parse_reading(item) for item in payload]
        readings.sort(key=lambda reading: reading.timestamp)
        return readings


class MockEmissionsSource:
    """Generate a plausible day of hourly readings ending at the current time."""

    def __init__(
        self,
        count: int = 25,
        rng: Optional[random.Random] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.count = count
        self._rng = rng or random.Random()
        self._clock = clock

    def fetch_readings(self) -> List[Reading]:
        now = self._clock()
        last_index = self.count - 1
        return [
            Reading(
                device_id=f"DEVICE-{index + 1:03d}",
                location=self._rng.choice(MOCK_LOCATIONS),
                co=float(self._rng.randint(10, 109)),
                co2=float(self._rng.randint(300, 1099)),
                timestamp=now - timedelta(hours=last_index - index),
            )
            for index in range(self.count)
        ]


class FallbackEmissionsSource:
    """Serve readings from ``primary`` and fall back when it fails."""

    def __init__(self, primary: EmissionsSource, fallback: EmissionsSource) -> None:
        self.primary = primary
        self.fallback = fallback

    def close(self) -> None:
        for source in (self.primary, self.fallback):
            close = getattr(source, "close", None)
            if callable(close):
                close()

    def fetch_readings(self) -> List[Reading]:
        try:
            return self.primary.fetch_readings()
        except DataSourceError as exc:
            logger.error(
                "Primary source failed; serving fallback readings",
                extra={"reason": str(exc)},
            )
            return self.fallback.fetch_readings()


def build_default_source() -> EmissionsSource:
    settings = get_settings()
    mock = MockEmissionsSource(count=settings.mock_reading_count)
    if settings.use_mock_data:
        logger.info("Using mock emissions data")
        return mock
    if not settings.api_url:
        logger.error("API URL is not configured; using mock emissions data")
        return mock
    http_source = HttpEmissionsSource(settings.api_url, timeout=settings.fetch_timeout)
    return FallbackEmissionsSource(primary=http_source, fallback=mock)
