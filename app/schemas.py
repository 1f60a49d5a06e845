"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.records import Reading
from services.aggregator import EmissionsSummary
from services.classifier import Status


class ReadingPayload(BaseModel):
    """One sensor observation as exposed to dashboard clients."""

    device_id: str
    location: str
    co: Optional[float] = Field(default=None, description="CO concentration in ppm.")
    co2: Optional[float] = Field(default=None, description="CO2 concentration in ppm.")
    timestamp: datetime
    status: Optional[Status] = Field(
        default=None, description="Classification, absent for invalid readings."
    )

    @classmethod
    def from_reading(cls, reading: Reading, status: Optional[Status]) -> "ReadingPayload":
        return cls(
            device_id=reading.device_id,
            location=reading.location,
            co=reading.co if status is not None else None,
            co2=reading.co2 if status is not None else None,
            timestamp=reading.timestamp,
            status=status,
        )


class SensorActivityPayload(BaseModel):
    active: bool
    elapsed_minutes: Optional[int] = None


class SummaryPayload(BaseModel):
    """Aggregate metrics computed for one refresh cycle."""

    overall_status: Optional[Status] = Field(
        default=None, description="Status of the latest reading; null when unknown."
    )
    avg_co: Optional[float] = None
    avg_co2: Optional[float] = None
    status_distribution: Dict[Status, int] = Field(default_factory=dict)
    sensor_activity: SensorActivityPayload
    reading_count: int = Field(..., ge=0)
    invalid_count: int = Field(default=0, ge=0)

    @classmethod
    def from_summary(cls, summary: EmissionsSummary) -> "SummaryPayload":
        return cls(
            overall_status=summary.overall_status,
            avg_co=summary.avg_co,
            avg_co2=summary.avg_co2,
            status_distribution=dict(summary.status_distribution),
            sensor_activity=SensorActivityPayload(
                active=summary.sensor_activity.active,
                elapsed_minutes=summary.sensor_activity.elapsed_minutes,
            ),
            reading_count=summary.reading_count,
            invalid_count=summary.invalid_count,
        )


class DashboardSnapshot(BaseModel):
    """Everything the presentation layer needs from one refresh cycle."""

    sequence: int = Field(..., ge=1, description="Monotonic refresh number.")
    refreshed_at: datetime
    summary: SummaryPayload
    readings: List[ReadingPayload] = Field(
        default_factory=list, description="Readings ordered oldest first."
    )


class RefreshFailure(BaseModel):
    """A refresh cycle whose fetch failed."""

    sequence: int = Field(..., ge=1)
    failed_at: datetime
    reason: str


class DashboardState(BaseModel):
    snapshot: Optional[DashboardSnapshot] = None
    last_error: Optional[RefreshFailure] = None


class RefreshAccepted(BaseModel):
    sequence: int = Field(..., description="Sequence number allocated to the refresh.")
