"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas import (
    AlertEvent,
    AlertThresholdConfig,
    ChartPoint,
    HistoricalReport,
    LiveState,
    NotificationTargets,
    PollReport,
    TimeRange,
)
from datastore.settings_store import SettingsStore
from services.monitor import MonitorService, build_default_monitor

router = APIRouter()


def get_monitor() -> MonitorService:
    return build_default_monitor()


def get_settings_store(monitor: MonitorService = Depends(get_monitor)) -> SettingsStore:
    return monitor.settings_store


@router.get(
    "/live",
    response_model=LiveState,
    summary="Current count and status for every known location.",
)
async def get_live_state(monitor: MonitorService = Depends(get_monitor)) -> LiveState:
    return monitor.live_state()


@router.get(
    "/live/series",
    response_model=List[ChartPoint],
    summary="Most recent observations for the live chart.",
)
async def get_live_series(
    limit: int | None = Query(default=None, ge=1, le=1000),
    monitor: MonitorService = Depends(get_monitor),
) -> List[ChartPoint]:
    return monitor.chart_series(limit)


@router.post(
    "/live/poll",
    response_model=PollReport,
    summary="Run one poll cycle immediately.",
)
def trigger_poll(monitor: MonitorService = Depends(get_monitor)) -> PollReport:
    return monitor.poll_cycle()


@router.get(
    "/alerts",
    response_model=List[AlertEvent],
    summary="Alerts fired during the last hour.",
)
async def get_recent_alerts(monitor: MonitorService = Depends(get_monitor)) -> List[AlertEvent]:
    return monitor.recent_alerts()


@router.get(
    "/analytics",
    response_model=HistoricalReport,
    summary="Hourly trends, location aggregates, and density buckets.",
)
async def get_analytics(
    time_range: TimeRange = Query(default=TimeRange.today, alias="range"),
    monitor: MonitorService = Depends(get_monitor),
) -> HistoricalReport:
    return monitor.report(time_range)


@router.get(
    "/analytics/export",
    summary="Download the observations in a time range as CSV.",
    response_class=Response,
)
async def export_analytics(
    time_range: TimeRange = Query(default=TimeRange.today, alias="range"),
    monitor: MonitorService = Depends(get_monitor),
) -> Response:
    body = monitor.export_csv(time_range)
    filename = f"crowd-analytics-{time_range.value}.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/settings/thresholds",
    response_model=Dict[str, AlertThresholdConfig],
    summary="All configured capacity thresholds.",
)
async def list_thresholds(
    store: SettingsStore = Depends(get_settings_store),
) -> Dict[str, AlertThresholdConfig]:
    return store.thresholds()


@router.get(
    "/settings/thresholds/{location}",
    response_model=AlertThresholdConfig,
    summary="Capacity thresholds for one location.",
)
async def get_threshold(
    location: str,
    store: SettingsStore = Depends(get_settings_store),
) -> AlertThresholdConfig:
    config = store.get_threshold(location)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No thresholds configured for location {location!r}.",
        )
    return config


@router.put(
    "/settings/thresholds/{location}",
    response_model=AlertThresholdConfig,
    summary="Create or replace the thresholds for a location.",
)
async def put_threshold(
    location: str,
    config: AlertThresholdConfig,
    store: SettingsStore = Depends(get_settings_store),
) -> AlertThresholdConfig:
    store.put_threshold(location, config)
    return config


@router.delete(
    "/settings/thresholds/{location}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove the thresholds for a location.",
)
async def delete_threshold(
    location: str,
    store: SettingsStore = Depends(get_settings_store),
) -> Response:
    if not store.delete_threshold(location):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No thresholds configured for location {location!r}.",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/settings/notifications",
    response_model=NotificationTargets,
    summary="Alert e-mail recipients and webhook destination.",
)
async def get_notifications(
    store: SettingsStore = Depends(get_settings_store),
) -> NotificationTargets:
    return store.notification_targets()


@router.put(
    "/settings/notifications",
    response_model=NotificationTargets,
    summary="Replace the alert e-mail recipients and webhook destination.",
)
async def put_notifications(
    targets: NotificationTargets,
    store: SettingsStore = Depends(get_settings_store),
) -> NotificationTargets:
    store.put_notification_targets(targets)
    return targets


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
