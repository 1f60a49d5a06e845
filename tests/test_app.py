import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.schemas import ReadingPayload
from app.web import distribution_slices, pie_background, series_points
from datastore.snapshots import SnapshotStore
from models.records import Reading
from services.aggregator import Aggregator
from services.classifier import Status
from services.refresher import RefreshService, build_default_refresher
from settings import get_settings


class StaticSource:
    def __init__(self, readings: List[Reading]) -> None:
        self.readings = readings

    def fetch_readings(self) -> List[Reading]:
        return list(self.readings)


def _recent_readings() -> List[Reading]:
    now = datetime.now(timezone.utc)
    pairs = [(10, 400), (40, 700), (80, 1000)]
    return [
        Reading(
            device_id=f"DEVICE-{index + 1:03d}",
            location="Futo Road",
            co=co,
            co2=co2,
            timestamp=now - timedelta(seconds=30 * (len(pairs) - index)),
        )
        for index, (co, co2) in enumerate(pairs)
    ]


def _install_refresher(monkeypatch, readings: List[Reading]) -> Dict[str, RefreshService]:
    services: Dict[str, RefreshService] = {}

    def build_test_refresher() -> RefreshService:
        service = services.get("default")
        if service is None:
            service = RefreshService(
                source=StaticSource(readings),
                aggregator=Aggregator(),
                store=SnapshotStore(),
                interval=60.0,
                workers=1,
            )
            services["default"] = service
        return service

    def cache_clear() -> None:
        services.clear()

    build_test_refresher.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_refresher", build_test_refresher)
    monkeypatch.setattr("app.api.build_default_refresher", build_test_refresher)
    monkeypatch.setattr("app.web.build_default_refresher", build_test_refresher)
    return services


@pytest.fixture
def api_client(monkeypatch) -> Iterator[TestClient]:
    _install_refresher(monkeypatch, _recent_readings())
    app = create_app()
    with TestClient(app) as client:
        _wait_for_summary(client)
        yield client


def _wait_for_summary(client: TestClient, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    last_status: int | None = None
    while time.monotonic() < deadline:
        response = client.get("/summary")
        last_status = response.status_code
        if response.status_code == 200:
            return response.json()
        time.sleep(0.05)
    pytest.fail(f"Summary never became available (last status {last_status}).")


def test_lifespan_stops_refresher_and_clears_cache(monkeypatch) -> None:
    monkeypatch.setenv("USE_MOCK_DATA", "true")
    get_settings.cache_clear()
    build_default_refresher.cache_clear()
    app = create_app()

    try:
        with TestClient(app):
            refresher_during = build_default_refresher()
            assert refresher_during.executor._shutdown is False

        assert refresher_during.executor._shutdown is True
        refresher_after = build_default_refresher()
        try:
            assert refresher_after is not refresher_during
        finally:
            refresher_after.stop()
    finally:
        build_default_refresher.cache_clear()
        get_settings.cache_clear()


def test_summary_reports_latest_snapshot(api_client: TestClient) -> None:
    payload = _wait_for_summary(api_client)

    assert payload["last_error"] is None
    snapshot = payload["snapshot"]
    assert snapshot["sequence"] >= 1
    summary = snapshot["summary"]
    assert summary["overall_status"] == "Alert"
    assert summary["avg_co"] == 43.3
    assert summary["avg_co2"] == 700.0
    assert summary["status_distribution"] == {"Good": 1, "Moderate": 1, "Alert": 1}
    assert summary["sensor_activity"] == {"active": True, "elapsed_minutes": 0}
    assert [reading["device_id"] for reading in snapshot["readings"]] == [
        "DEVICE-001",
        "DEVICE-002",
        "DEVICE-003",
    ]


def test_readings_are_newest_first_and_limited(api_client: TestClient) -> None:
    response = api_client.get("/readings", params={"limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert [reading["device_id"] for reading in body] == ["DEVICE-003", "DEVICE-002"]
    assert body[0]["status"] == "Alert"


def test_refresh_endpoint_schedules_new_cycle(api_client: TestClient) -> None:
    before = api_client.get("/summary").json()["snapshot"]["sequence"]

    response = api_client.post("/refresh")

    assert response.status_code == 202
    sequence = response.json()["sequence"]
    assert sequence > before

    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        current = api_client.get("/summary").json()["snapshot"]["sequence"]
        if current == sequence:
            break
        time.sleep(0.05)
    assert current == sequence


def test_dashboard_page_renders(api_client: TestClient) -> None:
    response = api_client.get("/ui")

    assert response.status_code == 200
    html = response.text
    assert "Sensors Active" in html
    assert "Alert" in html
    assert "43.3" in html
    assert "DEVICE-003" in html


def test_summary_unavailable_before_first_refresh(monkeypatch) -> None:
    _install_refresher(monkeypatch, _recent_readings())
    client = TestClient(create_app())

    response = client.get("/summary")

    assert response.status_code == 503
    assert response.json()["detail"] == "No emissions data has been loaded yet."
    assert client.get("/readings").status_code == 503
    assert "Loading emissions data" in client.get("/ui").text


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_dashboard_percentages_ignore_invalid_readings(monkeypatch) -> None:
    now = datetime.now(timezone.utc)
    pairs = [(10, 400), (40, 700), (-1, 400), (float("nan"), 500)]
    readings = [
        Reading(
            device_id=f"DEVICE-{index + 1:03d}",
            location="Obinze",
            co=co,
            co2=co2,
            timestamp=now - timedelta(seconds=30 * (len(pairs) - index)),
        )
        for index, (co, co2) in enumerate(pairs)
    ]
    _install_refresher(monkeypatch, readings)

    with TestClient(create_app()) as client:
        _wait_for_summary(client)
        html = client.get("/ui").text

    assert "Good: 1 (50%)" in html
    assert "Moderate: 1 (50%)" in html
    assert "(25%)" not in html


def test_dashboard_renders_charts(api_client: TestClient) -> None:
    html = api_client.get("/ui").text

    assert "<svg" in html
    assert html.count("<polyline") == 2
    assert "conic-gradient(" in html


def test_distribution_slices_share_classified_readings_only() -> None:
    slices = distribution_slices({Status.good: 1, Status.alert: 3})

    assert slices == [(Status.good, 1, 25.0), (Status.alert, 3, 75.0)]
    assert distribution_slices({}) == []


def test_pie_background_stacks_slices_in_order() -> None:
    background = pie_background([(Status.good, 1, 25.0), (Status.alert, 3, 75.0)])

    assert background == "conic-gradient(#00A86B 0.00% 25.00%, #E53935 25.00% 100.00%)"


def test_series_points_scale_to_peak_and_skip_invalid() -> None:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    readings = [
        ReadingPayload(device_id="A", location="L", co=50.0, co2=400.0, timestamp=now, status=Status.moderate),
        ReadingPayload(device_id="B", location="L", co=None, co2=None, timestamp=now, status=None),
        ReadingPayload(device_id="C", location="L", co=100.0, co2=800.0, timestamp=now, status=Status.alert),
    ]

    assert series_points(readings, "co", width=100, height=50) == "0.0,25.0 100.0,0.0"
    assert series_points([], "co") == ""
