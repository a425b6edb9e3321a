"""Background delivery of fired alerts to the notification sinks."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Callable, Dict, Optional, Union

from app.schemas import AlertEvent, DispatchOutcome, SinkResult
from datastore.settings_store import SettingsStore
from models.records import display_name
from services.notifications import EmailMessage, EmailSink, WebhookMessage, WebhookSink
from services.thresholds import CooldownTracker

logger = logging.getLogger(__name__)

_Message = Union[EmailMessage, WebhookMessage]


def _format_threshold(threshold: float) -> str:
    return f"{threshold:g}"


def build_email(event: AlertEvent, recipients: str) -> EmailMessage:
    place = display_name(event.location)
    threshold = _format_threshold(event.threshold)
    body = (
        f"Alert: High crowd density detected at {place}.\n\n"
        f"Current Count: {event.count}\n"
        f"Threshold: {threshold}\n"
        f"Time: {event.fired_at.isoformat()}\n\n"
        "Please deploy staff immediately."
    )
    return EmailMessage(
        to=recipients,
        subject=f"[CRITICAL] High Crowd Density Detected: {event.count} People",
        body=body,
    )


def build_webhook(event: AlertEvent, url: str) -> WebhookMessage:
    place = display_name(event.location)
    message = (
        "\U0001F6A8 **CRITICAL ALERT** \U0001F6A8\n"
        f"High crowd density detected at **{place}**.\n"
        f"Count: **{event.count}** (Threshold: {_format_threshold(event.threshold)})"
    )
    return WebhookMessage(url=url, message=message)


class AlertDispatcher:
    """Delivers alerts through every sink independently.

    The e-mail result decides the cooldown: a delivered (or simulated) e-mail
    records ``event.fired_at`` for the location, a failed one leaves the
    cooldown untouched so the next qualifying poll cycle retries.
    """

    def __init__(
        self,
        email_sink: EmailSink,
        webhook_sink: Optional[WebhookSink],
        cooldown: CooldownTracker,
        settings_store: SettingsStore,
        workers: int = 2,
    ) -> None:
        self.email_sink = email_sink
        self.webhook_sink = webhook_sink
        self.cooldown = cooldown
        self.settings_store = settings_store
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="alert-dispatch")
        self._futures: Dict[str, Future[DispatchOutcome]] = {}
        self._futures_lock = Lock()

    def dispatch(self, event: AlertEvent) -> DispatchOutcome:
        try:
            targets = self.settings_store.notification_targets()
            email = self._send(
                "email",
                self.email_sink.send,
                build_email(event, targets.recipients),
                event,
            )

            webhook: Optional[SinkResult] = None
            if targets.webhook_url and self.webhook_sink is not None:
                webhook = self._send(
                    "webhook",
                    self.webhook_sink.send,
                    build_webhook(event, targets.webhook_url),
                    event,
                )

            cooldown_recorded = False
            if email.ok:
                self.cooldown.record(event.location, event.fired_at)
                cooldown_recorded = True
            return DispatchOutcome(
                event=event,
                email=email,
                webhook=webhook,
                cooldown_recorded=cooldown_recorded,
            )
        finally:
            self.cooldown.finish(event.location)

    def submit(self, event: AlertEvent) -> Future[DispatchOutcome]:
        """Queue delivery without waiting for it."""
        try:
            future = self.executor.submit(self.dispatch, event)
        except RuntimeError:
            self.cooldown.finish(event.location)
            raise
        with self._futures_lock:
            self._futures[event.location] = future
        future.add_done_callback(lambda _f, loc=event.location: self._clear_future(loc, _f))
        return future

    def pending(self) -> Dict[str, Future[DispatchOutcome]]:
        with self._futures_lock:
            return dict(self._futures)

    def shutdown(self, wait: bool = False) -> None:
        """Stop the worker pool and close sinks that hold HTTP clients."""
        self.executor.shutdown(wait=wait, cancel_futures=True)
        for sink in (self.email_sink, self.webhook_sink):
            close = getattr(sink, "close", None)
            if callable(close):
                close()

    def _clear_future(self, location: str, future: Future[DispatchOutcome]) -> None:
        if future.cancelled():
            self.cooldown.finish(location)
        with self._futures_lock:
            if self._futures.get(location) is future:
                self._futures.pop(location, None)

    @staticmethod
    def _send(
        sink_name: str,
        send: Callable[[_Message], SinkResult],
        message: _Message,
        event: AlertEvent,
    ) -> SinkResult:
        try:
            result = send(message)
        except Exception as exc:  # noqa: BLE001 - one sink must not block the other
            result = SinkResult(sink=sink_name, ok=False, detail=str(exc))

        if result.ok:
            logger.info(
                "Alert notification delivered",
                extra={
                    "location": event.location,
                    "count": event.count,
                    "sink": sink_name,
                    "status": "simulated" if result.simulated else "sent",
                },
            )
        else:
            logger.error(
                "Alert notification failed",
                extra={
                    "location": event.location,
                    "count": event.count,
                    "sink": sink_name,
                    "reason": result.detail,
                },
            )
        return result
