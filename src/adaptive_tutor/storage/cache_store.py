from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


def _normalize(part: str) -> str:
    # Escape the separator so parts containing ":" cannot collide.
    return str(part).lower().strip().replace("%", "%25").replace(":", "%3a")


def cache_key(subject: str, topic: Optional[str] = None, mode: Optional[str] = None) -> str:
    """
    Build a cache key of the form ``subject[:topic[:mode]]``.

    Parts are lower-cased and trimmed, and any ``:`` or ``%`` inside a part is
    percent-escaped so distinct triples never share a key. A mode without a
    topic is rejected because content entries are only ever addressed by the
    full triple.
    """
    if mode is not None and topic is None:
        raise ValueError("a mode-qualified key also needs a topic")
    parts = [_normalize(subject)]
    if topic is not None:
        parts.append(_normalize(topic))
    if mode is not None:
        parts.append(_normalize(getattr(mode, "value", mode)))
    return ":".join(parts)


class CacheEntry(BaseModel):
    """Most recently resolved payload for a key and when it was stored."""

    model_config = ConfigDict(populate_by_name=True)

    payload: Dict[str, Any]
    cached_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="cachedAt"
    )


class CacheStore(ABC):
    """Key-value store for resolved topics and content."""

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for a key, or None when absent."""

    @abstractmethod
    def set(self, key: str, payload: Dict[str, Any]) -> CacheEntry:
        """Store a payload under a key, replacing any previous entry."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""


class InMemoryCacheStore(CacheStore):
    """Process-scoped cache used by tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, payload: Dict[str, Any]) -> CacheEntry:
        entry = CacheEntry(payload=payload)
        self._entries[key] = entry
        return entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileCacheStore(CacheStore):
    """JSON-file persistence for cache entries, rewritten on every mutation."""

    def __init__(self, path: Path):
        """Ensure the backing directory exists and record the JSON filepath."""
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> Dict[str, CacheEntry]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as handle:
            raw = handle.read()
        if not raw.strip():
            return {}
        data = json.loads(raw)
        entries: Dict[str, CacheEntry] = {}
        for key, value in data.items():
            try:
                entries[key] = CacheEntry.model_validate(value)
            except ValidationError:
                logger.warning("Dropping malformed cache entry %s", key)
        return entries

    def _write(self, entries: Dict[str, CacheEntry]) -> None:
        serialized = {key: entry.model_dump(mode="json", by_alias=True) for key, entry in entries.items()}
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(serialized, handle, indent=2)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._load().get(key)

    def set(self, key: str, payload: Dict[str, Any]) -> CacheEntry:
        entries = self._load()
        entry = CacheEntry(payload=payload)
        entries[key] = entry
        self._write(entries)
        return entry

    def delete(self, key: str) -> None:
        entries = self._load()
        if entries.pop(key, None) is not None:
            self._write(entries)


def create_cache_store(backend: str, path: Path) -> CacheStore:
    """Instantiate the cache backend named in the configuration."""
    if backend == "memory":
        return InMemoryCacheStore()
    if backend == "file":
        return JsonFileCacheStore(path)
    raise ValueError(f"Unknown cache backend: {backend}. Supported: 'file', 'memory'")
