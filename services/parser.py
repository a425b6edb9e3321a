"""Parsing of the comma separated crowd-count feed."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone, tzinfo
from typing import Callable, List, Optional

from models.records import Observation
from settings import DEFAULT_LOCATION
from storage.feed_source import decode_feed

logger = logging.getLogger(__name__)

_MIN_FIELDS = 3

_CAPTURE_PATTERN = re.compile(
    r"capture_(?P<date>\d{4}-\d{2}-\d{2})[T_ ]"
    r"(?P<hour>\d{2})[:\-]?(?P<minute>\d{2})[:\-]?(?P<second>\d{2})"
    r"(?P<fraction>\.\d+)?(?P<offset>Z|[+-]\d{2}:?\d{2})?\.jpe?g$",
    re.IGNORECASE,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FeedParser:
    """Turns raw feed text into observations, dropping rows it cannot use."""

    def __init__(
        self,
        default_location: str = DEFAULT_LOCATION,
        location_field: Optional[int] = None,
        local_tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.default_location = default_location
        self.location_field = location_field
        self.local_tz = local_tz
        self._clock = clock

    def parse(self, raw_text: str | bytes) -> List[Observation]:
        if isinstance(raw_text, bytes):
            raw_text = decode_feed(raw_text, "<bytes>")

        ingested_at = self._clock()
        observations: List[Observation] = []
        dropped = 0

        for row_number, line in enumerate(raw_text.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            observation = self._parse_row(line, ingested_at)
            if observation is None:
                dropped += 1
                logger.debug("Dropping feed row %d", row_number, extra={"reason": "unparseable row"})
                continue
            observations.append(observation)

        logger.debug(
            "Parsed feed",
            extra={"row_count": len(observations), "dropped_rows": dropped},
        )
        return observations

    def _parse_row(self, line: str, ingested_at: datetime) -> Optional[Observation]:
        parts = [part.strip() for part in line.split(",")]
        if len(parts) < _MIN_FIELDS:
            return None

        source_ref, timestamp_raw, count_raw = parts[0], parts[1], parts[2]
        count = self._parse_count(count_raw)
        if count is None:
            return None

        timestamp = (
            self._parse_timestamp(timestamp_raw)
            or self._timestamp_from_source_ref(source_ref)
            or ingested_at
        )

        location = self.default_location
        if self.location_field is not None and self.location_field < len(parts):
            location = parts[self.location_field] or self.default_location

        return Observation(
            source_ref=source_ref,
            timestamp=timestamp,
            count=count,
            location=location,
        )

    @staticmethod
    def _parse_count(value: str) -> Optional[int]:
        if not value:
            return None
        try:
            parsed = float(value)
        except ValueError:
            return None
        if not math.isfinite(parsed) or parsed < 0 or not parsed.is_integer():
            return None
        return int(parsed)

    def _parse_timestamp(self, value: str) -> Optional[datetime]:
        candidate = value.strip()
        if not candidate:
            return None

        if " " in candidate and "T" not in candidate:
            candidate = candidate.replace(" ", "T", 1)
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"

        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
        return self._normalize(parsed)

    def _timestamp_from_source_ref(self, source_ref: str) -> Optional[datetime]:
        match = _CAPTURE_PATTERN.search(source_ref)
        if match is None:
            return None

        offset = match.group("offset") or ""
        if offset.upper() == "Z":
            offset = "+00:00"
        elif len(offset) == 5:
            offset = f"{offset[:3]}:{offset[3:]}"
        candidate = (
            f"{match.group('date')}T{match.group('hour')}:{match.group('minute')}:"
            f"{match.group('second')}{match.group('fraction') or ''}{offset}"
        )
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
        return self._normalize(parsed)

    def _normalize(self, parsed: datetime) -> Optional[datetime]:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=self.local_tz)
        try:
            return parsed.astimezone(timezone.utc)
        except (OverflowError, ValueError):
            # Shifting to UTC can leave the supported datetime range.
            return None
