"""Outbound e-mail and webhook senders."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from app.schemas import SinkResult

logger = logging.getLogger(__name__)

_EMAIL_ACCEPTED_STATUSES = {"success", "simulated"}


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str


@dataclass(frozen=True)
class WebhookMessage:
    url: str
    message: str


class EmailSink(Protocol):
    def send(self, message: EmailMessage) -> SinkResult:
        ...


class WebhookSink(Protocol):
    def send(self, message: WebhookMessage) -> SinkResult:
        ...


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("detail") or data.get("status"))
    return str(data)


class HttpEmailSink:
    """Sends e-mail through the notifier backend's ``/send-email`` endpoint."""

    def __init__(self, base_url: str, client: Optional[httpx.Client] = None, timeout: float = 10.0) -> None:
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def send(self, message: EmailMessage) -> SinkResult:
        try:
            response = self._client.post(
                "/send-email",
                json={"to": message.to, "subject": message.subject, "body": message.body},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            return SinkResult(sink="email", ok=False, detail=_error_detail(exc.response))
        except (httpx.HTTPError, ValueError) as exc:
            return SinkResult(sink="email", ok=False, detail=str(exc))

        status = payload.get("status") if isinstance(payload, dict) else None
        if status not in _EMAIL_ACCEPTED_STATUSES:
            detail = payload.get("error") if isinstance(payload, dict) else None
            return SinkResult(sink="email", ok=False, detail=detail or f"status={status}")
        return SinkResult(sink="email", ok=True, simulated=status == "simulated", detail=status)

    def close(self) -> None:
        self._client.close()


class HttpWebhookSink:
    """Relays chat webhook messages through the notifier backend."""

    def __init__(self, base_url: str, client: Optional[httpx.Client] = None, timeout: float = 10.0) -> None:
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def send(self, message: WebhookMessage) -> SinkResult:
        try:
            response = self._client.post(
                "/send-webhook",
                json={"url": message.url, "message": message.message},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            return SinkResult(sink="webhook", ok=False, detail=_error_detail(exc.response))
        except httpx.HTTPError as exc:
            return SinkResult(sink="webhook", ok=False, detail=str(exc))
        return SinkResult(sink="webhook", ok=True)

    def close(self) -> None:
        self._client.close()


class SimulatedEmailSink:
    """Logs the e-mail instead of sending it; used without a notifier backend."""

    def send(self, message: EmailMessage) -> SinkResult:
        logger.info(
            "Simulated alert e-mail to %s: %s",
            message.to,
            message.subject,
            extra={"sink": "email", "status": "simulated"},
        )
        return SinkResult(sink="email", ok=True, simulated=True, detail="simulated")


class DirectWebhookSink:
    """Posts straight to a Slack or Discord compatible incoming webhook."""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = 10.0) -> None:
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, message: WebhookMessage) -> SinkResult:
        try:
            response = self._client.post(
                message.url,
                json={"text": message.message, "content": message.message},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            return SinkResult(sink="webhook", ok=False, detail=_error_detail(exc.response))
        except httpx.HTTPError as exc:
            return SinkResult(sink="webhook", ok=False, detail=str(exc))
        return SinkResult(sink="webhook", ok=True)

    def close(self) -> None:
        self._client.close()
