"""
Preference Storage

A tiny key-value store for user preferences that live on this machine
only, such as the last exchange rate the user typed. Values are strings.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class PreferenceError(Exception):
    """Preferences could not be read or written."""
    pass


class KeyValueStore(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Preferences that last as long as the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileKeyValueStore(KeyValueStore):
    """
    Preferences kept in a JSON object on disk.

    A missing file reads as empty. An unreadable or corrupt file also reads
    as empty, so a bad preferences file never blocks startup; writing
    replaces it.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    def _load(self) -> dict[str, str]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as e:
            raise PreferenceError(f"Could not write preferences to {self._path}: {e}") from e
