from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from app.schemas import TimeRange
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_alerts,
    render_analysis,
    render_live,
    render_report,
    render_thresholds,
)
from services.vision import AnalysisError, AnalysisTimeoutError, VisionClient


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the CrowdWatch service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
thresholds_app = typer.Typer(help="Manage per-location capacity thresholds.")
app.add_typer(thresholds_app, name="thresholds")


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
        help="CrowdWatch API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    vision_url: Optional[str] = typer.Option(
        None,
        "--vision-url",
        help="Image analysis service URL (defaults to VISION_BASE_URL env or http://localhost:5001).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between status checks when waiting for an analysis.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to wait for an analysis.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        vision_url=vision_url,
        poll_interval=poll_interval,
        poll_timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("live")
def live_command(ctx: typer.Context) -> None:
    """Show the current count and status for each location."""
    state = _get_state(ctx)
    render_live(state.client.get_live())


@app.command("alerts")
def alerts_command(ctx: typer.Context) -> None:
    """List alerts fired during the last hour."""
    state = _get_state(ctx)
    render_alerts(state.client.get_alerts())


@app.command("analytics")
def analytics_command(
    ctx: typer.Context,
    time_range: TimeRange = typer.Option(
        TimeRange.today,
        "--range",
        "-r",
        case_sensitive=False,
        help="Reporting window.",
    ),
) -> None:
    """Show hourly trends, location aggregates, and density buckets."""
    state = _get_state(ctx)
    render_report(state.client.get_analytics(time_range.value))


@thresholds_app.command("show")
def thresholds_show(ctx: typer.Context) -> None:
    """List the configured thresholds."""
    state = _get_state(ctx)
    render_thresholds(state.client.list_thresholds())


@thresholds_app.command("set")
def thresholds_set(
    ctx: typer.Context,
    location: str = typer.Argument(..., help="Location identifier, e.g. main_entrance."),
    max_capacity: int = typer.Option(..., "--max-capacity", min=1, help="Maximum people allowed."),
    warning_ratio: float = typer.Option(0.7, "--warning-ratio", min=0.0, max=1.0),
    critical_ratio: float = typer.Option(0.9, "--critical-ratio", min=0.0, max=1.0),
) -> None:
    """Create or replace the thresholds for a location."""
    state = _get_state(ctx)
    saved = state.client.put_threshold(
        location,
        {
            "max_capacity": max_capacity,
            "warning_ratio": warning_ratio,
            "critical_ratio": critical_ratio,
        },
    )
    typer.secho(f"Thresholds saved for {location}.", fg=typer.colors.GREEN)
    render_thresholds({location: saved})


@thresholds_app.command("delete")
def thresholds_delete(
    ctx: typer.Context,
    location: str = typer.Argument(..., help="Location identifier."),
) -> None:
    """Remove the thresholds for a location."""
    state = _get_state(ctx)
    state.client.delete_threshold(location)
    typer.secho(f"Thresholds removed for {location}.", fg=typer.colors.GREEN)


@app.command("analyze")
def analyze_command(
    ctx: typer.Context,
    image: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to an image."),
) -> None:
    """Submit an image for people counting and wait for the result."""
    state = _get_state(ctx)
    config = state.config
    vision = VisionClient(
        config.vision_url,
        poll_interval=config.poll_interval,
        timeout=config.poll_timeout,
    )
    typer.echo(f"Analyzing {image} via {config.vision_url} (timeout={config.poll_timeout}s)...")
    try:
        result = vision.analyze(image)
    except AnalysisTimeoutError as exc:
        typer.secho(f"Analysis timed out: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    except AnalysisError as exc:
        typer.secho(f"Processing failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    finally:
        vision.close()
    typer.echo()
    render_analysis(result.model_dump(mode="json"))
