"""Sensor staleness detection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

DEFAULT_ACTIVITY_WINDOW = timedelta(minutes=5)
_MINUTE = timedelta(minutes=1)


@dataclass(frozen=True)
class SensorActivity:
    """Whether the fleet reported recently, valid only at the time it was computed."""

    active: bool
    elapsed_minutes: Optional[int] = None


def check_activity(
    latest_timestamp: Optional[datetime],
    now: datetime,
    window: timedelta = DEFAULT_ACTIVITY_WINDOW,
) -> SensorActivity:
    """Report whether ``latest_timestamp`` falls strictly inside the trailing window.

    ``elapsed_minutes`` is floored and reported whether or not the fleet is active.
    Without a timestamp there is nothing to measure and the fleet is inactive.
    """
    if latest_timestamp is None:
        return SensorActivity(active=False, elapsed_minutes=None)

    active = latest_timestamp > now - window
    elapsed_minutes = (now - latest_timestamp) // _MINUTE
    return SensorActivity(active=active, elapsed_minutes=elapsed_minutes)
