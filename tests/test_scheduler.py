from __future__ import annotations

import logging
import threading
import time

import pytest

from services.scheduler import PollScheduler


def test_tick_runs_callback_synchronously() -> None:
    calls: list[int] = []
    scheduler = PollScheduler(lambda: calls.append(1), interval=60)

    scheduler.tick()
    scheduler.tick()

    assert calls == [1, 1]
    assert scheduler.ticks == 2
    assert scheduler.running is False


def test_failing_callback_is_logged_and_survives(caplog) -> None:
    def explode() -> None:
        raise RuntimeError("boom")

    scheduler = PollScheduler(explode, interval=60)

    with caplog.at_level(logging.ERROR, logger="services.scheduler"):
        scheduler.tick()
        scheduler.tick()

    assert scheduler.ticks == 2
    assert sum(record.getMessage() == "Poll cycle failed" for record in caplog.records) == 2


def test_start_runs_immediately_and_repeats_until_stopped() -> None:
    reached = threading.Event()
    calls: list[int] = []

    def callback() -> None:
        calls.append(1)
        if len(calls) >= 3:
            reached.set()

    scheduler = PollScheduler(callback, interval=0.01)
    scheduler.start()
    scheduler.start()
    try:
        assert reached.wait(timeout=5)
        assert scheduler.running is True
    finally:
        scheduler.stop(timeout=5)

    assert scheduler.running is False
    stopped_at = len(calls)
    time.sleep(0.05)
    assert len(calls) == stopped_at


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        PollScheduler(lambda: None, interval=0)
