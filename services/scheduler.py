from __future__ import annotations

import logging
from threading import Event, Lock, Thread
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PollScheduler:
    """Runs a callback at a fixed interval on a background thread.

    ``tick`` runs a single cycle synchronously so callers can drive the loop
    step by step without a timer.
    """

    def __init__(self, callback: Callable[[], object], interval: float, name: str = "poll-loop") -> None:
        if interval <= 0:
            raise ValueError("interval must be positive.")
        self.callback = callback
        self.interval = interval
        self.name = name
        self.ticks = 0
        self._stop = Event()
        self._thread: Optional[Thread] = None
        self._lock = Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop.clear()
            self._thread = Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            self._stop.set()
            thread = self._thread
            self._thread = None
        if thread is not None:
            thread.join(timeout if timeout is not None else self.interval * 2)

    def tick(self) -> None:
        self.ticks += 1
        try:
            self.callback()
        except Exception:  # noqa: BLE001 - a failed cycle must not stop the loop
            logger.exception("Poll cycle failed", extra={"source": self.name})

    def _run(self) -> None:
        self.tick()
        while not self._stop.wait(self.interval):
            self.tick()
