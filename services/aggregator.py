"""Aggregation logic for emissions readings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from models.records import Reading
from services.activity import DEFAULT_ACTIVITY_WINDOW, SensorActivity, check_activity
from services.classifier import Status, classify, is_valid_concentration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmissionsSummary:
    """Computed statistics for one refresh cycle."""

    overall_status: Optional[Status] = None
    avg_co: Optional[float] = None
    avg_co2: Optional[float] = None
    status_distribution: Dict[Status, int] = field(default_factory=dict)
    sensor_activity: SensorActivity = field(default_factory=lambda: SensorActivity(active=False))
    reading_count: int = 0
    invalid_count: int = 0
    latest_reading: Optional[Reading] = None


def _round_mean(total: float, count: int) -> float:
    # Halves round away from zero on the exact binary value, like JS toFixed(1).
    mean = Decimal(total / count)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _is_valid(reading: Reading) -> bool:
    return is_valid_concentration(reading.co) and is_valid_concentration(reading.co2)


def _is_ascending(readings: List[Reading]) -> bool:
    return all(
        earlier.timestamp <= later.timestamp
        for earlier, later in zip(readings, readings[1:])
    )


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def __init__(self, window: timedelta = DEFAULT_ACTIVITY_WINDOW) -> None:
        self.window = window

    def aggregate(self, readings: Iterable[Reading], now: datetime) -> EmissionsSummary:
        ordered = list(readings)
        if not _is_ascending(ordered):
            logger.warning(
                "Readings were not in chronological order; sorting before aggregation",
                extra={"reading_count": len(ordered)},
            )
            ordered.sort(key=lambda reading: reading.timestamp)

        distribution: Dict[Status, int] = {}
        total_co = 0.0
        total_co2 = 0.0
        valid_count = 0
        last_valid: Optional[Reading] = None

        for reading in ordered:
            if not _is_valid(reading):
                logger.warning(
                    "Skipping reading with invalid gas concentration",
                    extra={"device_id": reading.device_id, "reason": f"CO={reading.co!r} CO2={reading.co2!r}"},
                )
                continue
            valid_count += 1
            total_co += reading.co
            total_co2 += reading.co2
            status = classify(reading.co, reading.co2)
            distribution[status] = distribution.get(status, 0) + 1
            last_valid = reading

        latest = ordered[-1] if ordered else None
        summary = EmissionsSummary(
            overall_status=classify(last_valid.co, last_valid.co2) if last_valid else None,
            avg_co=_round_mean(total_co, valid_count) if valid_count else None,
            avg_co2=_round_mean(total_co2, valid_count) if valid_count else None,
            status_distribution=distribution,
            sensor_activity=check_activity(
                latest.timestamp if latest else None, now, self.window
            ),
            reading_count=len(ordered),
            invalid_count=len(ordered) - valid_count,
            latest_reading=latest,
        )
        return summary
