"""Content-addressed cache of extraction results.

Keyed by the upload's identity (file name, size, last-modified timestamp) so
re-running a batch on the same screenshots skips the extraction service.
Only real extraction results are stored, never fallback rows.

JSON file layout (JsonFileCache):
    {"<name>|<size>|<modified>": [{"position": 1, "team_label": "A1", "kills": 8,
                                   "confidence": 0.9}, ...], ...}
"""

import json
import os
from abc import ABC, abstractmethod
from dataclasses import asdict

from .models import ExtractedEntry


def _key_str(key: tuple) -> str:
    return '|'.join(str(part) for part in key)


class ExtractionCache(ABC):
    @abstractmethod
    def get(self, key: tuple) -> list[ExtractedEntry] | None:
        """Return the cached entries for key, or None."""
        pass

    @abstractmethod
    def put(self, key: tuple, entries: list[ExtractedEntry]) -> None:
        pass


class MemoryCache(ExtractionCache):
    def __init__(self):
        self._store: dict[str, list[ExtractedEntry]] = {}

    def get(self, key: tuple) -> list[ExtractedEntry] | None:
        entries = self._store.get(_key_str(key))
        return list(entries) if entries is not None else None

    def put(self, key: tuple, entries: list[ExtractedEntry]) -> None:
        self._store[_key_str(key)] = list(entries)

    def __len__(self):
        return len(self._store)


class JsonFileCache(ExtractionCache):
    """Cache persisted to a single JSON file, rewritten on every put."""

    def __init__(self, path: str):
        self.path = path
        self._store: dict[str, list[dict]] = {}
        if os.path.exists(path):
            try:
                with open(path, 'r') as f:
                    self._store = json.load(f)
            except json.JSONDecodeError as e:
                print(f"Warning: Ignoring unreadable extraction cache {path}: {e}")
                self._store = {}

    def get(self, key: tuple) -> list[ExtractedEntry] | None:
        rows = self._store.get(_key_str(key))
        if rows is None:
            return None
        return [ExtractedEntry(**row) for row in rows]

    def put(self, key: tuple, entries: list[ExtractedEntry]) -> None:
        self._store[_key_str(key)] = [asdict(e) for e in entries]
        cache_dir = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(cache_dir, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(self._store, f, indent=2)

    def __len__(self):
        return len(self._store)
