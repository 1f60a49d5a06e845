from __future__ import annotations

import itertools
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_state
from datastore.snapshots import SnapshotStore
from logging_config import configure_logging
from services.aggregator import Aggregator
from services.refresher import RefreshService
from settings import get_settings
from sources.emissions import build_default_source


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the emissions dashboard service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Dashboard API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between summary fetches when watching.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        poll_interval=poll_interval,
        request_timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("summary")
def summary_command(
    ctx: typer.Context,
    recent: int = typer.Option(5, "--recent", min=0, help="Number of recent readings to list."),
) -> None:
    """Fetch and display the latest dashboard summary."""
    state = _get_state(ctx)
    render_state(state.client.get_summary(), recent=recent)


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    count: int = typer.Option(0, "--count", "-n", min=0, help="Number of refreshes to show (0 = forever)."),
    recent: int = typer.Option(5, "--recent", min=0, help="Number of recent readings to list."),
) -> None:
    """Display the summary repeatedly at the poll interval."""
    state = _get_state(ctx)
    cycles = itertools.count() if count == 0 else range(count)
    for index in cycles:
        if index:
            time.sleep(state.config.poll_interval)
            typer.echo()
        render_state(state.client.get_summary(), recent=recent)


@app.command("refresh")
def refresh_command(ctx: typer.Context) -> None:
    """Ask the service to refresh immediately."""
    state = _get_state(ctx)
    sequence = state.client.trigger_refresh()
    typer.secho(f"Refresh scheduled. sequence={sequence}", fg=typer.colors.GREEN)


@app.command("local")
def local_command(
    recent: int = typer.Option(5, "--recent", min=0, help="Number of recent readings to list."),
) -> None:
    """Fetch from the configured data source and summarize without a server."""
    configure_logging()
    settings = get_settings()
    refresher = RefreshService(
        source=build_default_source(),
        aggregator=Aggregator(window=timedelta(seconds=settings.activity_window)),
        store=SnapshotStore(),
        workers=1,
    )
    try:
        sequence = refresher.refresh()
        refresher.wait_for(sequence, timeout=settings.fetch_timeout + 5)
        payload = refresher.store.get_state().model_dump(mode="json")
    finally:
        refresher.stop()
    render_state(payload, recent=recent)
    if payload.get("snapshot") is None:
        raise typer.Exit(code=1)
