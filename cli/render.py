from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_STATUS_COLORS = {
    "normal": typer.colors.GREEN,
    "warning": typer.colors.YELLOW,
    "critical": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_live(payload: Dict[str, Any]) -> None:
    echo_heading("Live State")
    echo_key_values(
        [
            ("total", payload.get("total")),
            ("generated_at", payload.get("generated_at")),
            ("feed_ok", payload.get("feed_ok")),
        ]
    )
    typer.echo()
    echo_heading("Locations")
    locations = payload.get("locations") or {}
    if not locations:
        typer.echo("No locations reported.")
        return
    for name, state in locations.items():
        status = state.get("status", "normal")
        typer.echo(f"  - {name}: {state.get('current')} ", nl=False)
        typer.secho(f"[{status}]", fg=_STATUS_COLORS.get(status))


def render_alerts(alerts: List[Dict[str, Any]]) -> None:
    echo_heading("Recent Alerts")
    if not alerts:
        typer.echo("No alerts in the last hour.")
        return
    for alert in alerts:
        typer.echo(
            f"  - {alert.get('fired_at')} {alert.get('location')}: "
            f"{alert.get('count')} people (threshold {alert.get('threshold')})"
        )


def render_report(payload: Dict[str, Any]) -> None:
    echo_heading("Analytics Report")
    summary = payload.get("summary") or {}
    echo_key_values(
        [
            ("time_range", payload.get("time_range")),
            ("range_start", payload.get("range_start")),
            ("total_readings", summary.get("total_readings")),
            ("peak", summary.get("peak")),
            ("average", summary.get("average")),
        ]
    )

    typer.echo()
    echo_heading("Hourly Trends")
    hourly = payload.get("hourly_trends") or []
    if hourly:
        for bucket in hourly:
            typer.echo(f"  - {bucket.get('hour')}: {bucket.get('average')}")
    else:
        typer.echo("No readings in range.")

    typer.echo()
    echo_heading("Locations")
    for aggregate in payload.get("location_aggregates") or []:
        typer.echo(
            f"  - {aggregate.get('name')}: total={aggregate.get('total')} "
            f"peak={aggregate.get('peak')} average={aggregate.get('average')}"
        )

    typer.echo()
    echo_heading("Density")
    for bucket in payload.get("density_buckets") or []:
        typer.echo(f"  - {bucket.get('label')}: {bucket.get('value')}")


def render_thresholds(payload: Dict[str, Any]) -> None:
    echo_heading("Thresholds")
    if not payload:
        typer.echo("No thresholds configured.")
        return
    for location, config in payload.items():
        typer.echo(
            f"  - {location}: max_capacity={config.get('max_capacity')} "
            f"warning_ratio={config.get('warning_ratio')} "
            f"critical_ratio={config.get('critical_ratio')}"
        )


def render_analysis(payload: Dict[str, Any]) -> None:
    echo_heading("Analysis Result")
    echo_key_values(
        [
            ("people_count", payload.get("people_count")),
            ("confidence_score", payload.get("confidence_score")),
            ("heatmap_url", payload.get("heatmap_url")),
        ]
    )
