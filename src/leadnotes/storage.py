from __future__ import annotations

import json
import os
from pathlib import Path

from leadnotes.errors import StoreError


class KeyValueArea:
    """String key/value area used by the local notes backend."""

    def get_item(self, key: str) -> str | None:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> list[str]:
        raise NotImplementedError


class MemoryArea(KeyValueArea):
    def __init__(self, items: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self.items)


class JsonFileArea(KeyValueArea):
    """Persistent area kept as a single JSON object on disk.

    The file is re-read on every access so several processes see each
    other's writes; each write replaces the file atomically. A file that
    does not parse raises ``StoreError`` and is never overwritten.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except ValueError as exc:
            raise StoreError(f"local notes file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"local notes file {self.path} does not hold a JSON object")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(items, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if items.pop(key, None) is not None:
            self._save(items)

    def keys(self) -> list[str]:
        return list(self._load())
