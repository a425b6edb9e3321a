from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_FEED_PATH_ENV = "CROWDWATCH_FEED_PATH"
_FEED_URL_ENV = "CROWDWATCH_FEED_URL"
_POLL_INTERVAL_ENV = "CROWDWATCH_POLL_INTERVAL"
_CHART_WINDOW_ENV = "CROWDWATCH_CHART_WINDOW"
_COOLDOWN_ENV = "CROWDWATCH_ALERT_COOLDOWN"
_FALLBACK_THRESHOLD_ENV = "CROWDWATCH_FALLBACK_THRESHOLD"
_LOCATIONS_ENV = "CROWDWATCH_LOCATIONS"
_TIMEZONE_ENV = "CROWDWATCH_TIMEZONE"
_STATE_PATH_ENV = "CROWDWATCH_STATE_PATH"
_POLLING_ENABLED_ENV = "CROWDWATCH_POLLING_ENABLED"
_NOTIFIER_URL_ENV = "NOTIFIER_BASE_URL"
_RECIPIENTS_ENV = "ALERT_RECIPIENTS"
_WEBHOOK_URL_ENV = "ALERT_WEBHOOK_URL"
_WORKER_COUNT_ENV = "DISPATCH_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_LOCATION = "main_entrance"


@dataclass(frozen=True)
class Settings:
    feed_path: str
    feed_url: Optional[str]
    poll_interval: float
    chart_window: int
    alert_cooldown: float
    fallback_threshold: float
    locations: Tuple[str, ...]
    timezone: str
    state_path: Optional[str]
    polling_enabled: bool
    notifier_base_url: Optional[str]
    alert_recipients: str
    webhook_url: Optional[str]
    dispatch_workers: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_locations(default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(_LOCATIONS_ENV)
    if value is None:
        return default
    names = [part.strip() for part in value.split(",")]
    locations = tuple(dict.fromkeys(name for name in names if name))
    return locations or default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        feed_path=_read_str_env(_FEED_PATH_ENV, "./counts.csv"),
        feed_url=_read_optional_env(_FEED_URL_ENV, None),
        poll_interval=_read_positive_float(_POLL_INTERVAL_ENV, 2.0),
        chart_window=_read_positive_int(_CHART_WINDOW_ENV, 30),
        alert_cooldown=_read_positive_float(_COOLDOWN_ENV, 10.0),
        fallback_threshold=_read_positive_float(_FALLBACK_THRESHOLD_ENV, 400.0),
        locations=_read_locations((DEFAULT_LOCATION,)),
        timezone=_read_str_env(_TIMEZONE_ENV, "UTC"),
        state_path=_read_optional_env(_STATE_PATH_ENV, "./tmp/crowdwatch_state.json"),
        polling_enabled=_read_bool(_POLLING_ENABLED_ENV, True),
        notifier_base_url=_read_optional_env(_NOTIFIER_URL_ENV, None),
        alert_recipients=_read_str_env(_RECIPIENTS_ENV, "ops@example.com"),
        webhook_url=_read_optional_env(_WEBHOOK_URL_ENV, None),
        dispatch_workers=_read_positive_int(_WORKER_COUNT_ENV, 2),
        log_level=_read_log_level("INFO"),
    )
