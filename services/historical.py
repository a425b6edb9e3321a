"""Aggregation logic for historical crowd reports."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional

from app.schemas import (
    DensityBucket,
    DensityLevel,
    HistoricalReport,
    HourlyBucket,
    LocationAggregate,
    ReportSummary,
    TimeRange,
)
from models.records import Observation, display_name

HIGH_DENSITY_THRESHOLD = 200
CRITICAL_DENSITY_THRESHOLD = 400

_DENSITY_LABELS = {
    DensityLevel.normal: f"Normal (<{HIGH_DENSITY_THRESHOLD})",
    DensityLevel.high: f"High ({HIGH_DENSITY_THRESHOLD}-{CRITICAL_DENSITY_THRESHOLD})",
    DensityLevel.critical: f"Critical (>{CRITICAL_DENSITY_THRESHOLD})",
}

_RANGE_DAYS = {
    TimeRange.week: 7,
    TimeRange.month: 30,
    TimeRange.quarter: 90,
}

EXPORT_COLUMNS = ("Timestamp", "Location", "People Count", "Alert Triggered")


@dataclass
class _Accumulator:
    total: int = 0
    samples: int = 0
    peak: int = 0

    def add(self, count: int) -> None:
        self.total += count
        self.samples += 1
        self.peak = max(self.peak, count)

    @property
    def average(self) -> float:
        return self.total / self.samples if self.samples else 0.0


@dataclass
class _Tally:
    hours: Dict[str, _Accumulator] = field(default_factory=dict)
    locations: Dict[str, _Accumulator] = field(default_factory=dict)
    density: Dict[DensityLevel, int] = field(
        default_factory=lambda: {level: 0 for level in DensityLevel}
    )
    overall: _Accumulator = field(default_factory=_Accumulator)


def density_level(count: int) -> DensityLevel:
    if count > CRITICAL_DENSITY_THRESHOLD:
        return DensityLevel.critical
    if count > HIGH_DENSITY_THRESHOLD:
        return DensityLevel.high
    return DensityLevel.normal


def range_start(time_range: TimeRange, now: datetime, local_tz: tzinfo = timezone.utc) -> datetime:
    """Resolve a named preset into the earliest timestamp it includes."""
    if time_range is TimeRange.today:
        local_now = now.astimezone(local_tz)
        return local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return now - timedelta(days=_RANGE_DAYS[time_range])


class HistoricalAggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def __init__(self, local_tz: tzinfo = timezone.utc) -> None:
        self.local_tz = local_tz

    def aggregate(
        self,
        observations: Iterable[Observation],
        time_range: TimeRange = TimeRange.today,
        now: Optional[datetime] = None,
    ) -> HistoricalReport:
        current = now or datetime.now(timezone.utc)
        start = range_start(time_range, current, self.local_tz)

        tally = _Tally()
        for observation in observations:
            if observation.timestamp < start:
                continue
            hour = observation.timestamp.astimezone(self.local_tz).strftime("%H:00")
            tally.hours.setdefault(hour, _Accumulator()).add(observation.count)
            tally.locations.setdefault(observation.location, _Accumulator()).add(observation.count)
            tally.density[density_level(observation.count)] += 1
            tally.overall.add(observation.count)

        return HistoricalReport(
            time_range=time_range,
            range_start=start,
            hourly_trends=self._hourly(tally),
            location_aggregates=self._locations(tally),
            density_buckets=self._density(tally),
            summary=ReportSummary(
                total_readings=tally.overall.samples,
                peak=tally.overall.peak,
                average=tally.overall.average,
            ),
        )

    @staticmethod
    def _hourly(tally: _Tally) -> List[HourlyBucket]:
        return [
            HourlyBucket(hour=hour, average=acc.average, samples=acc.samples)
            for hour, acc in sorted(tally.hours.items())
        ]

    @staticmethod
    def _locations(tally: _Tally) -> List[LocationAggregate]:
        return [
            LocationAggregate(
                location=location,
                name=display_name(location),
                total=acc.total,
                peak=acc.peak,
                average=acc.average,
                samples=acc.samples,
            )
            for location, acc in tally.locations.items()
        ]

    @staticmethod
    def _density(tally: _Tally) -> List[DensityBucket]:
        return [
            DensityBucket(level=level, label=_DENSITY_LABELS[level], value=value)
            for level, value in tally.density.items()
            if value > 0
        ]

    def export_csv(
        self,
        observations: Iterable[Observation],
        alert_threshold: float = CRITICAL_DENSITY_THRESHOLD,
    ) -> str:
        """Render observations as a CSV report with a header row."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)
        for observation in observations:
            local = observation.timestamp.astimezone(self.local_tz)
            writer.writerow(
                (
                    local.strftime("%Y-%m-%d %H:%M:%S"),
                    display_name(observation.location),
                    observation.count,
                    "Yes" if observation.count > alert_threshold else "No",
                )
            )
        return buffer.getvalue()
