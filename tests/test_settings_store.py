from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.schemas import AlertThresholdConfig, NotificationTargets
from datastore.kv_store import KeyValueStore
from datastore.settings_store import SettingsStore


@pytest.fixture()
def settings_store() -> SettingsStore:
    return SettingsStore(KeyValueStore(), default_recipients="ops@example.com")


def test_missing_threshold_returns_none(settings_store: SettingsStore) -> None:
    assert settings_store.get_threshold("food_court") is None
    assert settings_store.thresholds() == {}


def test_put_get_and_delete_threshold(settings_store: SettingsStore) -> None:
    config = AlertThresholdConfig(max_capacity=500, warning_ratio=0.7, critical_ratio=0.9)

    settings_store.put_threshold("main_entrance", config)

    assert settings_store.get_threshold("main_entrance") == config
    assert settings_store.thresholds() == {"main_entrance": config}
    assert settings_store.delete_threshold("main_entrance") is True
    assert settings_store.get_threshold("main_entrance") is None


def test_invalid_stored_threshold_is_ignored(settings_store: SettingsStore) -> None:
    settings_store.store.set("thresholds:main_entrance", {"max_capacity": -3})

    assert settings_store.get_threshold("main_entrance") is None
    assert settings_store.thresholds() == {}


def test_threshold_ratio_order_is_validated() -> None:
    with pytest.raises(ValidationError):
        AlertThresholdConfig(max_capacity=100, warning_ratio=0.9, critical_ratio=0.5)
    with pytest.raises(ValidationError):
        AlertThresholdConfig(max_capacity=100, warning_ratio=0.5, critical_ratio=1.5)
    with pytest.raises(ValidationError):
        AlertThresholdConfig(max_capacity=0)


def test_notification_targets_default_then_override(settings_store: SettingsStore) -> None:
    defaults = settings_store.notification_targets()
    assert defaults.recipients == "ops@example.com"
    assert defaults.webhook_url is None

    settings_store.put_notification_targets(
        NotificationTargets(recipients="a@example.com,b@example.com", webhook_url="https://hooks.example/x")
    )

    targets = settings_store.notification_targets()
    assert targets.recipients == "a@example.com,b@example.com"
    assert targets.webhook_url == "https://hooks.example/x"


def test_thresholds_survive_store_reload(tmp_path) -> None:
    path = tmp_path / "state.json"
    first = SettingsStore(KeyValueStore(persistence_path=path))
    first.put_threshold("food_court", AlertThresholdConfig(max_capacity=120))

    second = SettingsStore(KeyValueStore(persistence_path=path))

    assert second.get_threshold("food_court") == AlertThresholdConfig(max_capacity=120)
