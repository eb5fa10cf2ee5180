"""Config domain cache: a plain key-value facade with no freshness logic."""

from __future__ import annotations

from typing import Any

from nlshell.cache.models import StoreStats
from nlshell.cache.store import EntryStore
from nlshell.core.config import ConfigCacheConfig


class ConfigCache:
    """Caches parsed configuration values under caller-chosen keys."""

    def __init__(self, config: ConfigCacheConfig | None = None) -> None:
        self._store: EntryStore[Any] = EntryStore(config or ConfigCacheConfig(), name="config")

    @property
    def store(self) -> EntryStore[Any]:
        return self._store

    def get(self, key: str) -> Any | None:
        value, hit = self._store.get(key)
        return value if hit else None

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        self._store.set(key, value, ttl_seconds)

    def invalidate_key(self, key: str) -> bool:
        return self._store.delete(key)

    def clear(self) -> None:
        self._store.clear()

    def stats(self) -> StoreStats:
        return self._store.stats()

    def close(self) -> None:
        self._store.close()
