"""Key/value settings kept as a single document of the settings collection."""

from typing import Any, Dict, Mapping, Optional, Union

from railfare.storage.document_store import CollectionName, DocumentStore


class SettingsStore:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _load(self) -> Dict[str, Any]:
        docs = self.store.find(CollectionName.SETTINGS)
        return docs[0] if docs else {}

    def get_value(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set_value(self, key: Union[str, Mapping[str, Any]], value: Optional[Any] = None) -> Dict[str, Any]:
        """Set one key, or merge a whole mapping when ``key`` is a mapping."""
        current = self._load()
        if isinstance(key, Mapping):
            current.update(key)
        else:
            current[key] = value
        self.store.replace(CollectionName.SETTINGS, [current])
        return current
