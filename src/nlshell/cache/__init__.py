"""Multi-tier cache: generic entry store, domain caches and the manager."""

from __future__ import annotations

from nlshell.cache.config_cache import ConfigCache
from nlshell.cache.context_cache import ContextCache
from nlshell.cache.manager import CacheManager, create_cache_manager
from nlshell.cache.metrics import LookupKind, MetricsTracker
from nlshell.cache.models import (
    CacheMetrics,
    CombinedStats,
    FileSystemContext,
    InvalidationCriteria,
    PersistedCacheData,
    StoreStats,
)
from nlshell.cache.provider_cache import ProviderCache
from nlshell.cache.store import CacheEntry, EntryStore, ReadWriteLock

__all__ = [
    "create_cache_manager",
    "CacheManager",
    "CacheEntry",
    "EntryStore",
    "ReadWriteLock",
    "ContextCache",
    "ProviderCache",
    "ConfigCache",
    "MetricsTracker",
    "LookupKind",
    "CacheMetrics",
    "CombinedStats",
    "FileSystemContext",
    "InvalidationCriteria",
    "PersistedCacheData",
    "StoreStats",
]
