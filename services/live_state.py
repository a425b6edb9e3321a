"""Derivation of the live per-location snapshot."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from app.schemas import AlertThresholdConfig, ChartPoint, LiveState, LocationState
from models.records import Observation
from services.thresholds import ThresholdEvaluator


def known_locations(
    configured: Iterable[str],
    thresholds: Mapping[str, AlertThresholdConfig],
) -> List[str]:
    return list(dict.fromkeys([*configured, *thresholds.keys()]))


class LiveStateAggregator:
    """Picks the most recent count for each location."""

    def current_state_of(
        self,
        locations: Iterable[str],
        observations_descending: Sequence[Observation],
        thresholds: Optional[Mapping[str, AlertThresholdConfig]] = None,
        generated_at: Optional[datetime] = None,
        feed_ok: bool = True,
    ) -> LiveState:
        thresholds = thresholds or {}
        wanted = list(dict.fromkeys(locations))
        latest: Dict[str, Observation] = {}
        for observation in observations_descending:
            if observation.location in wanted and observation.location not in latest:
                latest[observation.location] = observation
                if len(latest) == len(wanted):
                    break

        states: Dict[str, LocationState] = {}
        for location in wanted:
            observation = latest.get(location)
            if observation is None:
                states[location] = LocationState()
                continue
            states[location] = LocationState(
                current=observation.count,
                status=ThresholdEvaluator.classify(observation.count, thresholds.get(location)),
                last_update=observation.timestamp,
            )

        return LiveState(
            total=sum(state.current for state in states.values()),
            locations=states,
            generated_at=generated_at or datetime.now(timezone.utc),
            feed_ok=feed_ok,
        )

    @staticmethod
    def chart_series(observations: Iterable[Observation]) -> List[ChartPoint]:
        return [ChartPoint(time=item.timestamp, people=item.count) for item in observations]
