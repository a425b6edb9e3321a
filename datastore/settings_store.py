"""Per-location thresholds and notification targets kept in a key-value store."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from pydantic import ValidationError

from app.schemas import AlertThresholdConfig, NotificationTargets
from datastore.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

_THRESHOLD_PREFIX = "thresholds:"
_NOTIFICATIONS_KEY = "notifications"


class SettingsStore:

    def __init__(
        self,
        store: KeyValueStore,
        default_recipients: str = "ops@example.com",
        default_webhook_url: Optional[str] = None,
    ) -> None:
        self.store = store
        self.default_recipients = default_recipients
        self.default_webhook_url = default_webhook_url

    def get_threshold(self, location: str) -> Optional[AlertThresholdConfig]:
        payload = self.store.get(f"{_THRESHOLD_PREFIX}{location}")
        if payload is None:
            return None
        try:
            return AlertThresholdConfig.model_validate(payload)
        except ValidationError:
            logger.warning(
                "Ignoring invalid stored threshold",
                extra={"location": location, "reason": "validation failed"},
            )
            return None

    def put_threshold(self, location: str, config: AlertThresholdConfig) -> None:
        self.store.set(f"{_THRESHOLD_PREFIX}{location}", config.model_dump(mode="json"))

    def delete_threshold(self, location: str) -> bool:
        return self.store.delete(f"{_THRESHOLD_PREFIX}{location}")

    def thresholds(self) -> Dict[str, AlertThresholdConfig]:
        """Return every valid threshold config keyed by location."""
        configs: Dict[str, AlertThresholdConfig] = {}
        for key in self.store.keys(_THRESHOLD_PREFIX):
            location = key[len(_THRESHOLD_PREFIX):]
            config = self.get_threshold(location)
            if config is not None:
                configs[location] = config
        return configs

    def notification_targets(self) -> NotificationTargets:
        payload = self.store.get(_NOTIFICATIONS_KEY)
        if payload is not None:
            try:
                return NotificationTargets.model_validate(payload)
            except ValidationError:
                logger.warning(
                    "Ignoring invalid stored notification targets",
                    extra={"reason": "validation failed"},
                )
        return NotificationTargets(
            recipients=self.default_recipients,
            webhook_url=self.default_webhook_url,
        )

    def put_notification_targets(self, targets: NotificationTargets) -> None:
        self.store.set(_NOTIFICATIONS_KEY, targets.model_dump(mode="json"))
