"""Poll-cycle orchestration for the live crowd monitor."""

from __future__ import annotations

import logging
import time
from collections import deque
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from threading import Lock
from typing import Deque, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.schemas import (
    AlertEvent,
    ChartPoint,
    HistoricalReport,
    LiveState,
    LocationState,
    PollReport,
    TimeRange,
)
from datastore.kv_store import build_default_store
from datastore.settings_store import SettingsStore
from services.dispatcher import AlertDispatcher
from services.historical import HistoricalAggregator, range_start
from services.live_state import LiveStateAggregator, known_locations
from services.notifications import (
    DirectWebhookSink,
    HttpEmailSink,
    HttpWebhookSink,
    SimulatedEmailSink,
)
from services.parser import FeedParser
from services.scheduler import PollScheduler
from services.thresholds import CooldownTracker, ThresholdEvaluator
from settings import get_settings
from storage.feed_source import FeedSource, FeedUnavailableError, build_feed_source
from storage.observation_store import ObservationStore

logger = logging.getLogger(__name__)


class MonitorService:
    """Coordinates the feed, live state, alerting, and reporting components."""

    def __init__(
        self,
        source: FeedSource,
        parser: FeedParser,
        store: ObservationStore,
        settings_store: SettingsStore,
        evaluator: ThresholdEvaluator,
        dispatcher: AlertDispatcher,
        locations: Iterable[str],
        live_aggregator: Optional[LiveStateAggregator] = None,
        historical: Optional[HistoricalAggregator] = None,
        poll_interval: float = 2.0,
        alert_history: int = 100,
    ) -> None:
        self.source = source
        self.parser = parser
        self.store = store
        self.settings_store = settings_store
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.locations = tuple(locations)
        self.live_aggregator = live_aggregator or LiveStateAggregator()
        self.historical = historical or HistoricalAggregator()
        self.scheduler = PollScheduler(self.poll_cycle, poll_interval)
        self._live: Optional[LiveState] = None
        self._alerts: Deque[AlertEvent] = deque(maxlen=alert_history)
        self._state_lock = Lock()
        self._cycle_lock = Lock()

    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self) -> None:
        """Stop polling and release dispatcher and feed resources."""
        self.scheduler.stop()
        self.dispatcher.shutdown()
        close = getattr(self.source, "close", None)
        if callable(close):
            close()

    def poll_cycle(self, now: Optional[datetime] = None) -> PollReport:
        """Fetch, parse, and ingest the feed, then evaluate and queue alerts."""
        with self._cycle_lock:
            started = time.perf_counter()
            cycle_time = now or datetime.now(timezone.utc)

            feed_ok = True
            try:
                observations = self.parser.parse(self.source.read())
            except FeedUnavailableError as exc:
                feed_ok = False
                logger.warning(
                    "Feed unavailable, keeping last snapshot",
                    extra={"source": self.source.name, "reason": str(exc)},
                )
            else:
                self.store.ingest(observations)

            thresholds = self.settings_store.thresholds()
            live = self.live_aggregator.current_state_of(
                known_locations(self.locations, thresholds),
                self.store.latest_first(),
                thresholds,
                generated_at=cycle_time,
                feed_ok=feed_ok,
            )

            fired = self.evaluator.evaluate(live, thresholds, now=cycle_time)
            for event in fired:
                with self._state_lock:
                    self._alerts.append(event)
                try:
                    self.dispatcher.submit(event)
                except RuntimeError as exc:
                    logger.warning(
                        "Alert dispatcher unavailable",
                        extra={"location": event.location, "reason": str(exc)},
                    )

            with self._state_lock:
                self._live = live

            logger.debug(
                "Poll cycle complete",
                extra={
                    "row_count": len(self.store),
                    "status": "ok" if feed_ok else "stale",
                    "elapsed_ms": int((time.perf_counter() - started) * 1000),
                },
            )
            return PollReport(live=live, observation_count=len(self.store), fired_alerts=fired)

    def live_state(self) -> LiveState:
        with self._state_lock:
            live = self._live
        if live is not None:
            return live
        return LiveState(
            locations={location: LocationState() for location in self.locations},
            feed_ok=False,
        )

    def chart_series(self, n: Optional[int] = None) -> List[ChartPoint]:
        return self.live_aggregator.chart_series(self.store.window(n))

    def recent_alerts(
        self,
        within: timedelta = timedelta(hours=1),
        now: Optional[datetime] = None,
    ) -> List[AlertEvent]:
        cutoff = (now or datetime.now(timezone.utc)) - within
        with self._state_lock:
            return [event for event in self._alerts if event.fired_at > cutoff]

    def report(self, time_range: TimeRange, now: Optional[datetime] = None) -> HistoricalReport:
        return self.historical.aggregate(self.store.all(), time_range, now=now)

    def export_csv(self, time_range: TimeRange, now: Optional[datetime] = None) -> str:
        start = range_start(time_range, now or datetime.now(timezone.utc), self.historical.local_tz)
        return self.historical.export_csv(
            self.store.since(start),
            alert_threshold=self.evaluator.fallback_threshold,
        )


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, using UTC", extra={"reason": name})
        return timezone.utc


def build_settings_store() -> SettingsStore:
    settings = get_settings()
    return SettingsStore(
        build_default_store(),
        default_recipients=settings.alert_recipients,
        default_webhook_url=settings.webhook_url,
    )


@lru_cache
def build_default_monitor() -> MonitorService:
    """Factory that wires the monitor from environment settings."""
    settings = get_settings()
    local_tz = resolve_timezone(settings.timezone)
    settings_store = build_settings_store()
    cooldown = CooldownTracker(settings_store.store, cooldown_seconds=settings.alert_cooldown)

    if settings.notifier_base_url:
        email_sink = HttpEmailSink(settings.notifier_base_url)
        webhook_sink = HttpWebhookSink(settings.notifier_base_url)
    else:
        email_sink = SimulatedEmailSink()
        webhook_sink = DirectWebhookSink()

    dispatcher = AlertDispatcher(
        email_sink=email_sink,
        webhook_sink=webhook_sink,
        cooldown=cooldown,
        settings_store=settings_store,
        workers=settings.dispatch_workers,
    )
    return MonitorService(
        source=build_feed_source(),
        parser=FeedParser(default_location=settings.locations[0], local_tz=local_tz),
        store=ObservationStore(chart_window=settings.chart_window),
        settings_store=settings_store,
        evaluator=ThresholdEvaluator(cooldown, fallback_threshold=settings.fallback_threshold),
        dispatcher=dispatcher,
        locations=settings.locations,
        historical=HistoricalAggregator(local_tz=local_tz),
        poll_interval=settings.poll_interval,
    )
