from __future__ import annotations
import copy
import json
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from settings import get_settings


class KeyValueStore:
    """Thread-safe key-value store holding JSON-compatible values."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._items: Dict[str, Any] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._items:
                return default
            return copy.deepcopy(self._items[key])

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so unserializable values fail before storage.
        payload = json.loads(json.dumps(value))
        with self._lock:
            self._items[key] = payload
            self._persist()

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._items:
                return False
            del self._items[key]
            self._persist()
            return True

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self._items if key.startswith(prefix))

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._items, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        if isinstance(data, dict):
            self._items.update(data)


@lru_cache
def build_default_store(path: Optional[str] = None) -> KeyValueStore:
    settings = get_settings()
    store_path = settings.state_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return KeyValueStore(persistence_path=persistence)
