"""Air-quality status classification for CO/CO2 readings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from types import MappingProxyType
from typing import Mapping


class Status(str, Enum):
    """Ordinal air-quality category, ``Good < Moderate < Alert``."""

    good = "Good"
    moderate = "Moderate"
    alert = "Alert"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {Status.good: 0, Status.moderate: 1, Status.alert: 2}


@dataclass(frozen=True)
class GasThresholds:
    """Upper ppm ceilings for the good and moderate bands of one gas."""

    good: float
    moderate: float


THRESHOLDS: Mapping[str, GasThresholds] = MappingProxyType(
    {
        "CO": GasThresholds(good=35, moderate=70),
        "CO2": GasThresholds(good=600, moderate=900),
    }
)


def classify(co: float, co2: float) -> Status:
    """Return the worst band either gas falls into.

    Ceilings are exclusive: a value equal to a ceiling stays in the better band.
    """
    co_limits = THRESHOLDS["CO"]
    co2_limits = THRESHOLDS["CO2"]
    if co > co_limits.moderate or co2 > co2_limits.moderate:
        return Status.alert
    if co > co_limits.good or co2 > co2_limits.good:
        return Status.moderate
    return Status.good


def is_valid_concentration(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value) and value >= 0
