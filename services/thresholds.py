"""Severity classification and alert firing decisions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import List, Mapping, Optional, Set

from app.schemas import AlertEvent, AlertThresholdConfig, LiveState, LocationStatus
from datastore.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_THRESHOLD = 400.0

_COOLDOWN_PREFIX = "cooldown:"


def _limit(config: AlertThresholdConfig, ratio: float) -> float:
    # Rounded so 500 * 0.9 compares as exactly 450.
    return round(config.max_capacity * ratio, 6)


class CooldownTracker:
    """Remembers when each location last had an alert delivered.

    Timestamps live in the key-value store so they survive restarts when the
    store is persisted. Locations with a dispatch still running are tracked
    in memory and treated as cooling down.
    """

    def __init__(self, store: KeyValueStore, cooldown_seconds: float = 10.0) -> None:
        if cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must not be negative.")
        self.store = store
        self.cooldown_seconds = cooldown_seconds
        self._in_flight: Set[str] = set()
        self._lock = Lock()

    def last_fired(self, location: str) -> Optional[datetime]:
        raw = self.store.get(f"{_COOLDOWN_PREFIX}{location}")
        if raw is None:
            return None
        try:
            return datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            return None

    def is_cooling_down(self, location: str, now: datetime) -> bool:
        with self._lock:
            if location in self._in_flight:
                return True
        last = self.last_fired(location)
        if last is None:
            return False
        return (now - last).total_seconds() <= self.cooldown_seconds

    def try_begin(self, location: str, now: datetime) -> bool:
        """Mark a dispatch as in flight unless the location is cooling down."""
        if self.is_cooling_down(location, now):
            return False
        with self._lock:
            if location in self._in_flight:
                return False
            self._in_flight.add(location)
        return True

    def finish(self, location: str) -> None:
        with self._lock:
            self._in_flight.discard(location)

    def record(self, location: str, fired_at: datetime) -> None:
        self.store.set(f"{_COOLDOWN_PREFIX}{location}", fired_at.isoformat())


class ThresholdEvaluator:

    def __init__(
        self,
        cooldown: CooldownTracker,
        fallback_threshold: float = DEFAULT_FALLBACK_THRESHOLD,
    ) -> None:
        self.cooldown = cooldown
        self.fallback_threshold = fallback_threshold

    @staticmethod
    def classify(count: int, config: Optional[AlertThresholdConfig]) -> LocationStatus:
        if config is None:
            return LocationStatus.normal
        if count >= _limit(config, config.critical_ratio):
            return LocationStatus.critical
        if count >= _limit(config, config.warning_ratio):
            return LocationStatus.warning
        return LocationStatus.normal

    def effective_threshold(self, config: Optional[AlertThresholdConfig]) -> float:
        if config is None:
            return self.fallback_threshold
        return _limit(config, config.critical_ratio)

    def evaluate(
        self,
        live_state: LiveState,
        thresholds: Mapping[str, AlertThresholdConfig],
        now: Optional[datetime] = None,
    ) -> List[AlertEvent]:
        """Return the alerts that should fire for this cycle.

        Each returned event has its location marked in flight; the dispatcher
        releases it when delivery completes.
        """
        fired_at = now or datetime.now(timezone.utc)
        events: List[AlertEvent] = []
        for location, state in live_state.locations.items():
            threshold = self.effective_threshold(thresholds.get(location))
            if state.current <= threshold:
                continue
            if not self.cooldown.try_begin(location, fired_at):
                logger.debug(
                    "Alert suppressed by cooldown",
                    extra={"location": location, "count": state.current, "threshold": threshold},
                )
                continue
            logger.info(
                "Alert triggered",
                extra={"location": location, "count": state.current, "threshold": threshold},
            )
            events.append(
                AlertEvent(
                    location=location,
                    count=state.current,
                    threshold=threshold,
                    fired_at=fired_at,
                )
            )
        return events
