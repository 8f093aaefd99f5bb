"""Singleton configuration flags persisted in the settings collection."""

from typing import Any, Dict

from .schema import SETTINGS
from .store_interface import RecordStore


class SettingsStore:
    """Key/value flags such as feature toggles and the admin verifier."""

    def __init__(self, store: RecordStore):
        self.store = store

    def get(self, key: str, default: Any = None) -> Any:
        record = self.store.get(SETTINGS, key)
        if record is None:
            return default
        return record["value"]

    def set(self, key: str, value: Any) -> None:
        self.store.put(SETTINGS, {"key": key, "value": value})

    def flag(self, key: str, default: bool = False) -> bool:
        return bool(self.get(key, default))

    def delete(self, key: str) -> bool:
        return self.store.delete(SETTINGS, key)

    def as_dict(self) -> Dict[str, Any]:
        return {r["key"]: r["value"] for r in self.store.all(SETTINGS)}
