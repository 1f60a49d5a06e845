from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer

_STATUS_COLORS = {
    "Good": typer.colors.GREEN,
    "Moderate": typer.colors.YELLOW,
    "Alert": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_ppm(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.1f} ppm"


def render_state(payload: Dict[str, Any], recent: int = 5) -> None:
    snapshot = payload.get("snapshot") or {}
    summary = snapshot.get("summary") or {}
    last_error = payload.get("last_error")

    echo_heading("Emissions Summary")
    if not summary:
        typer.echo("No emissions data available.")
    else:
        status = summary.get("overall_status") or "Unknown"
        echo_key_values([("sequence", snapshot.get("sequence")), ("refreshed_at", snapshot.get("refreshed_at"))])
        typer.echo("overall_status: ", nl=False)
        typer.secho(status, fg=_STATUS_COLORS.get(status), bold=True)
        echo_key_values(
            [
                ("avg_co", _format_ppm(summary.get("avg_co"))),
                ("avg_co2", _format_ppm(summary.get("avg_co2"))),
                ("reading_count", summary.get("reading_count")),
                ("invalid_count", summary.get("invalid_count")),
            ]
        )

        activity = summary.get("sensor_activity") or {}
        typer.echo()
        echo_heading("Sensors")
        if activity.get("active") and not last_error:
            typer.secho("Sensors Active", fg=typer.colors.GREEN)
        else:
            elapsed = activity.get("elapsed_minutes")
            suffix = f" (last reading {elapsed} minutes ago)" if elapsed is not None else ""
            typer.secho(f"Sensors Inactive{suffix}", fg=typer.colors.YELLOW)

        distribution = summary.get("status_distribution") or {}
        typer.echo()
        echo_heading("Status Distribution")
        if distribution:
            for name, count in distribution.items():
                typer.echo(f"  - {name}: {count}")
        else:
            typer.echo("No readings classified.")

        readings = snapshot.get("readings") or []
        if readings and recent > 0:
            typer.echo()
            echo_heading("Recent Readings")
            for reading in reversed(readings[-recent:]):
                typer.echo(
                    f"  - {reading.get('timestamp')} {reading.get('device_id')} "
                    f"@ {reading.get('location')}: CO={reading.get('co')} "
                    f"CO2={reading.get('co2')} [{reading.get('status') or 'Invalid'}]"
                )

    if last_error:
        typer.echo()
        typer.secho(
            f"Last refresh #{last_error.get('sequence')} failed: {last_error.get('reason')}",
            fg=typer.colors.RED,
            err=True,
        )
