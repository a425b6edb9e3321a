"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from settings import DEFAULT_LOCATION


@dataclass(frozen=True, slots=True)
class Observation:
    """A single crowd count parsed from one feed row."""

    source_ref: str
    timestamp: datetime
    count: int
    location: str = DEFAULT_LOCATION


def display_name(location: str) -> str:
    """Turn ``main_entrance`` into ``Main Entrance``."""
    return location.replace("_", " ").title()
