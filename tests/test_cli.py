from __future__ import annotations

from typing import Any, Dict

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.config import DEFAULT_POLL_INTERVAL, load_config
from settings import get_settings


def _state_payload(sequence: int = 4, active: bool = True) -> Dict[str, Any]:
    return {
        "snapshot": {
            "sequence": sequence,
            "refreshed_at": "2024-05-01T12:00:00Z",
            "summary": {
                "overall_status": "Alert",
                "avg_co": 43.3,
                "avg_co2": 700.0,
                "status_distribution": {"Good": 1, "Moderate": 1, "Alert": 1},
                "sensor_activity": {"active": active, "elapsed_minutes": 0 if active else 42},
                "reading_count": 3,
                "invalid_count": 0,
            },
            "readings": [
                {
                    "device_id": "DEVICE-003",
                    "location": "Obinze",
                    "co": 80.0,
                    "co2": 1000.0,
                    "timestamp": "2024-05-01T11:59:00Z",
                    "status": "Alert",
                }
            ],
        },
        "last_error": None,
    }


class StubClient:
    def __init__(self, config, payload: Dict[str, Any] | None = None) -> None:
        self.config = config
        self.payload = payload or _state_payload()
        self.summary_calls = 0
        self.refresh_calls = 0
        self.closed = False

    def get_summary(self) -> Dict[str, Any]:
        self.summary_calls += 1
        return self.payload

    def trigger_refresh(self) -> int:
        self.refresh_calls += 1
        return 7

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_summary_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["summary"])

    assert result.exit_code == 0
    assert "Emissions Summary" in result.stdout
    assert "overall_status: Alert" in result.stdout
    assert "avg_co: 43.3 ppm" in result.stdout
    assert "Sensors Active" in result.stdout
    assert "DEVICE-003" in result.stdout
    assert stub.closed is True


def test_summary_command_reports_inactive_sensors(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None, payload=_state_payload(active=False))
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["summary"])

    assert result.exit_code == 0
    assert "Sensors Inactive (last reading 42 minutes ago)" in result.stdout


def test_watch_command_polls_at_interval(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    sleeps: list[float] = []
    monkeypatch.setattr("cli.app.time.sleep", sleeps.append)

    result = runner.invoke(app, ["--poll-interval", "0.5", "watch", "--count", "3"])

    assert result.exit_code == 0
    assert stub.summary_calls == 3
    assert sleeps == [0.5, 0.5]
    assert result.stdout.count("Emissions Summary") == 3


def test_refresh_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["refresh"])

    assert result.exit_code == 0
    assert "sequence=7" in result.stdout
    assert stub.refresh_calls == 1


def test_local_command_uses_mock_source(monkeypatch, runner: CliRunner) -> None:
    monkeypatch.setenv("USE_MOCK_DATA", "true")
    monkeypatch.setenv("MOCK_READING_COUNT", "5")
    monkeypatch.setattr("cli.app.configure_logging", lambda: None)
    get_settings.cache_clear()
    try:
        result = runner.invoke(app, ["local", "--recent", "2"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 0
    assert "reading_count: 5" in result.stdout
    assert "DEVICE-005" in result.stdout
    assert "Sensors Active" in result.stdout


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://dashboard.local:9000/")
    monkeypatch.setenv("CLI_POLL_INTERVAL", "not-a-number")

    config = load_config()

    assert config.base_url == "http://dashboard.local:9000"
    assert config.poll_interval == DEFAULT_POLL_INTERVAL
