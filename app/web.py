from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.schemas import DashboardState, ReadingPayload
from services.classifier import Status
from services.refresher import RefreshService, build_default_refresher


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

PRIMARY_COLOR = "#0073BB"
STATUS_COLORS = {
    Status.good: "#00A86B",
    Status.moderate: "#FF8C00",
    Status.alert: "#E53935",
}
RECENT_READING_COUNT = 10
CHART_WIDTH = 600
CHART_HEIGHT = 200


def status_color(value: Optional[Status]) -> str:
    if value is None:
        return PRIMARY_COLOR
    return STATUS_COLORS.get(value, PRIMARY_COLOR)


def sensors_active(state: DashboardState) -> bool:
    # A failure newer than the snapshot marks the fleet inactive.
    if state.snapshot is None or state.last_error is not None:
        return False
    return state.snapshot.summary.sensor_activity.active


def distribution_slices(distribution: Mapping[Status, int]) -> List[Tuple[Status, int, float]]:
    """Pair each status count with its share of the classified readings."""
    total = sum(distribution.values())
    if not total:
        return []
    return [(status, count, 100 * count / total) for status, count in distribution.items()]


def pie_background(slices: Sequence[Tuple[Status, int, float]]) -> str:
    stops: List[str] = []
    start = 0.0
    for status, _count, percent in slices:
        end = start + percent
        stops.append(f"{status_color(status)} {start:.2f}% {end:.2f}%")
        start = end
    return f"conic-gradient({', '.join(stops)})"


def series_peak(readings: Sequence[ReadingPayload], attr: str) -> Optional[float]:
    values = [getattr(reading, attr) for reading in readings if getattr(reading, attr) is not None]
    return max(values) if values else None


def series_points(
    readings: Sequence[ReadingPayload],
    attr: str,
    width: int = CHART_WIDTH,
    height: int = CHART_HEIGHT,
) -> str:
    """SVG polyline points for one gas, scaled to that gas's own peak.

    Invalid readings leave a gap in the x positions but are not plotted.
    """
    peak = series_peak(readings, attr)
    if not peak:
        return ""
    step = width / max(len(readings) - 1, 1)
    points = []
    for index, reading in enumerate(readings):
        value = getattr(reading, attr)
        if value is None:
            continue
        points.append(f"{index * step:.1f},{height - value / peak * height:.1f}")
    return " ".join(points)


def get_refresher() -> RefreshService:
    return build_default_refresher()


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    refresher: RefreshService = Depends(get_refresher),
) -> HTMLResponse:
    state = refresher.store.get_state()
    snapshot = state.snapshot
    readings = snapshot.readings if snapshot else []
    recent = list(reversed(readings[-RECENT_READING_COUNT:]))
    slices = distribution_slices(snapshot.summary.status_distribution) if snapshot else []
    return templates.TemplateResponse(
        request,
        "ui/dashboard.html",
        {
            "state": state,
            "snapshot": snapshot,
            "recent_readings": recent,
            "sensors_active": sensors_active(state),
            "status_color": status_color,
            "distribution": slices,
            "pie_background": pie_background(slices),
            "chart_width": CHART_WIDTH,
            "chart_height": CHART_HEIGHT,
            "co_points": series_points(readings, "co"),
            "co2_points": series_points(readings, "co2"),
            "co_peak": series_peak(readings, "co"),
            "co2_peak": series_peak(readings, "co2"),
            "refresh_seconds": max(1, round(refresher.interval)),
        },
    )
