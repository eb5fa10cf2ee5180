"""Tests for the config cache."""

from __future__ import annotations

from nlshell.cache.config_cache import ConfigCache
from nlshell.core.config import ConfigCacheConfig


class TestConfigCache:
    """ConfigCache should behave as a plain expiring key-value store."""

    def test_get_set_invalidate(self) -> None:
        cache = ConfigCache(ConfigCacheConfig())
        try:
            assert cache.get("theme") is None
            cache.set("theme", {"color": "dark"})
            assert cache.get("theme") == {"color": "dark"}
            assert cache.invalidate_key("theme") is True
            assert cache.invalidate_key("theme") is False
            assert cache.get("theme") is None
        finally:
            cache.close()

    def test_clear_and_stats(self) -> None:
        cache = ConfigCache()
        try:
            cache.set("a", 1)
            cache.set("b", 2, ttl_seconds=60)
            assert cache.stats().entries == 2
            cache.clear()
            assert cache.stats().entries == 0
        finally:
            cache.close()
