"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LocationStatus(str, Enum):
    """Severity of a location's current count against its capacity."""

    normal = "normal"
    warning = "warning"
    critical = "critical"


class DensityLevel(str, Enum):
    normal = "normal"
    high = "high"
    critical = "critical"


class TimeRange(str, Enum):
    """Named presets for the historical reporting window."""

    today = "today"
    week = "week"
    month = "month"
    quarter = "quarter"


class AlertThresholdConfig(BaseModel):
    """Capacity thresholds configured for a single location."""

    max_capacity: int = Field(..., gt=0)
    warning_ratio: float = Field(default=0.7, gt=0, le=1)
    critical_ratio: float = Field(default=0.9, gt=0, le=1)

    @model_validator(mode="after")
    def _check_ratio_order(self) -> "AlertThresholdConfig":
        if self.warning_ratio >= self.critical_ratio:
            raise ValueError("warning_ratio must be lower than critical_ratio")
        return self


class NotificationTargets(BaseModel):
    """Where alert notifications are delivered."""

    recipients: str = Field(..., min_length=1, description="Comma separated e-mail addresses.")
    webhook_url: Optional[str] = None


class LocationState(BaseModel):
    current: int = Field(default=0, ge=0)
    status: LocationStatus = LocationStatus.normal
    last_update: Optional[datetime] = None


class LiveState(BaseModel):
    """Most recent count per location plus the overall total."""

    total: int = Field(default=0, ge=0)
    locations: Dict[str, LocationState] = Field(default_factory=dict)
    generated_at: Optional[datetime] = None
    feed_ok: bool = True


class ChartPoint(BaseModel):
    time: datetime
    people: int = Field(..., ge=0)


class AlertEvent(BaseModel):
    """A decision to notify about a location above its threshold."""

    model_config = ConfigDict(frozen=True)

    location: str
    count: int = Field(..., ge=0)
    threshold: float
    fired_at: datetime


class SinkResult(BaseModel):
    sink: str
    ok: bool
    simulated: bool = False
    detail: Optional[str] = None


class DispatchOutcome(BaseModel):
    """Result of delivering one alert through every configured sink."""

    event: AlertEvent
    email: SinkResult
    webhook: Optional[SinkResult] = None
    cooldown_recorded: bool = False


class PollReport(BaseModel):
    live: LiveState
    observation_count: int = Field(default=0, ge=0)
    fired_alerts: List[AlertEvent] = Field(default_factory=list)


class HourlyBucket(BaseModel):
    hour: str = Field(..., description="Local hour-of-day label formatted as HH:00.")
    average: float = 0.0
    samples: int = Field(default=0, ge=0)


class LocationAggregate(BaseModel):
    location: str
    name: str
    total: int = Field(default=0, ge=0)
    peak: int = Field(default=0, ge=0)
    average: float = 0.0
    samples: int = Field(default=0, ge=0)


class DensityBucket(BaseModel):
    level: DensityLevel
    label: str
    value: int = Field(..., gt=0)


class ReportSummary(BaseModel):
    total_readings: int = Field(default=0, ge=0)
    peak: int = Field(default=0, ge=0)
    average: float = 0.0


class HistoricalReport(BaseModel):
    """Aggregates computed over the observations inside a time range."""

    time_range: TimeRange
    range_start: datetime
    hourly_trends: List[HourlyBucket] = Field(default_factory=list)
    location_aggregates: List[LocationAggregate] = Field(default_factory=list)
    density_buckets: List[DensityBucket] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)


class AnalysisResult(BaseModel):
    """People count returned by the vision analysis service."""

    people_count: int = Field(..., ge=0)
    confidence_score: float = Field(default=0.95, ge=0, le=1)
    heatmap_url: Optional[str] = None
    vis_url: Optional[str] = None
