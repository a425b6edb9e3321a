from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Iterable, Optional, Tuple

from models.records import Observation


class ObservationStore:
    """Holds the latest parsed feed snapshot.

    Observations are ingested in feed order, oldest first, because the feed is
    appended to. ``latest_first`` exposes the reversed view that live state is
    derived from.
    """

    def __init__(self, chart_window: int = 30, retention: Optional[int] = None) -> None:
        if chart_window <= 0:
            raise ValueError("chart_window must be positive.")
        if retention is not None and retention <= 0:
            raise ValueError("retention must be positive when provided.")
        self.chart_window = chart_window
        self.retention = retention
        self._snapshot: Tuple[Observation, ...] = ()
        self._version = 0
        self._ingested_at: Optional[datetime] = None
        self._lock = Lock()

    def ingest(self, observations: Iterable[Observation]) -> int:
        """Replace the working set with a fresh snapshot and return its size."""
        snapshot = tuple(observations)
        if self.retention is not None:
            snapshot = snapshot[-self.retention:]
        with self._lock:
            self._snapshot = snapshot
            self._version += 1
            self._ingested_at = datetime.now(timezone.utc)
        return len(snapshot)

    def all(self) -> Tuple[Observation, ...]:
        with self._lock:
            return self._snapshot

    def window(self, n: Optional[int] = None) -> Tuple[Observation, ...]:
        """Return the most recent ``n`` observations in feed order."""
        size = self.chart_window if n is None else n
        if size <= 0:
            return ()
        return self.all()[-size:]

    def latest_first(self) -> Tuple[Observation, ...]:
        return tuple(reversed(self.all()))

    def since(self, start: datetime) -> Tuple[Observation, ...]:
        return tuple(item for item in self.all() if item.timestamp >= start)

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def ingested_at(self) -> Optional[datetime]:
        with self._lock:
            return self._ingested_at

    def __len__(self) -> int:
        return len(self.all())
