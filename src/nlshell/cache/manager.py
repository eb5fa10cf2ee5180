"""Cache manager: owns the three domain caches and the shared metrics tracker.

On construction a global byte budget is split 25% / 50% / 25% across the
context / provider / config caches. When a statistics backend is configured
the manager loads the previous statistics document at start-up and writes a
fresh one on ``close()``. Cache entries themselves are never persisted.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from pydantic import ValidationError as PydanticValidationError

from nlshell.cache.config_cache import ConfigCache
from nlshell.cache.context_cache import ContextCache
from nlshell.cache.metrics import MetricsTracker
from nlshell.cache.models import CombinedStats, InvalidationCriteria, PersistedCacheData
from nlshell.cache.provider_cache import ProviderCache
from nlshell.core.config import (
    CacheManagerConfig,
    ConfigCacheConfig,
    ContextCacheConfig,
    ProviderCacheConfig,
)
from nlshell.core.exceptions import PersistenceError
from nlshell.persistence import FileStatsBackend, IStatsBackend

if TYPE_CHECKING:
    from nlshell.core.config import AppSettings

log = logging.getLogger(__name__)


def apportion_budget(
    total: int,
    context_config: ContextCacheConfig,
    provider_config: ProviderCacheConfig,
    config_config: ConfigCacheConfig,
) -> tuple[ContextCacheConfig, ProviderCacheConfig, ConfigCacheConfig]:
    """Return copies of the domain configs with byte limits split 25/50/25."""
    if total <= 0:
        return context_config, provider_config, config_config
    return (
        context_config.model_copy(update={"max_size_bytes": max(total // 4, 1)}),
        provider_config.model_copy(update={"max_size_bytes": max(total // 2, 1)}),
        config_config.model_copy(update={"max_size_bytes": max(total // 4, 1)}),
    )


class CacheManager:
    """Composes the context, provider-response and config caches.

    Args:
        config: Manager-level settings (enabled flag, persistence, budget).
        context_config: Limits for the context cache.
        provider_config: Limits for the provider-response cache.
        config_config: Limits for the config cache.
        backend: Explicit statistics backend. When omitted, a file backend
            is used if ``persistent_storage`` is on and ``storage_path`` set.
    """

    def __init__(
        self,
        config: CacheManagerConfig | None = None,
        *,
        context_config: ContextCacheConfig | None = None,
        provider_config: ProviderCacheConfig | None = None,
        config_config: ConfigCacheConfig | None = None,
        backend: IStatsBackend | None = None,
    ) -> None:
        self._config = config or CacheManagerConfig()
        self._lock = threading.Lock()
        self._closed = False

        ctx_cfg, prov_cfg, conf_cfg = apportion_budget(
            self._config.max_total_size_bytes,
            context_config or ContextCacheConfig(),
            provider_config or ProviderCacheConfig(),
            config_config or ConfigCacheConfig(),
        )

        self._metrics = MetricsTracker()
        self._context = ContextCache(ctx_cfg, metrics=self._metrics)
        self._provider = ProviderCache(prov_cfg, metrics=self._metrics)
        self._config_cache = ConfigCache(conf_cfg)

        if backend is None and self._config.persistent_storage and self._config.storage_path:
            backend = FileStatsBackend(self._config.storage_path)
        self._backend = backend
        self._last_persisted = self._load_stats()

    # ── Accessors ───────────────────────────────────────────────────

    @property
    def context_cache(self) -> ContextCache:
        return self._context

    @property
    def provider_cache(self) -> ProviderCache:
        return self._provider

    @property
    def config_cache(self) -> ConfigCache:
        return self._config_cache

    @property
    def metrics(self) -> MetricsTracker:
        return self._metrics

    @property
    def is_enabled(self) -> bool:
        return self._config.enabled

    @property
    def last_persisted(self) -> Optional[PersistedCacheData]:
        """Statistics document found at start-up, if any."""
        return self._last_persisted

    # ── Operations ──────────────────────────────────────────────────

    def clear_all(self) -> None:
        """Clear every domain cache and reset the metrics."""
        with self._lock:
            self._clear_all()

    def invalidate(self, criteria: InvalidationCriteria) -> None:
        """Drop cached data matching ``criteria``; empty fields are ignored.

        A model without a provider names nothing and is ignored.
        """
        with self._lock:
            if criteria.directory:
                self._context.invalidate_directory(criteria.directory)

            if criteria.provider:
                # a provider clears all of its models; the model narrows nothing
                self._provider.invalidate_provider(criteria.provider)
                if criteria.model:
                    self._provider.invalidate_model(criteria.provider, criteria.model)
            elif criteria.model:
                log.debug("Ignoring model-only invalidation for %s", criteria.model)

            if criteria.config_key:
                self._config_cache.invalidate_key(criteria.config_key)

            if criteria.clear_all:
                self._clear_all()

    def get_stats(self) -> CombinedStats:
        return CombinedStats(
            context=self._context.stats(),
            provider=self._provider.stats(),
            config=self._config_cache.stats(),
            metrics=self._metrics.get_metrics(),
        )

    def close(self) -> None:
        """Persist statistics (if configured) and stop every sweeper.

        Raises:
            PersistenceError: The statistics document could not be written.
                Sweepers are stopped regardless.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                if self._backend is not None:
                    self._save_stats()
            finally:
                self._context.close()
                self._provider.close()
                self._config_cache.close()
                log.debug("Cache manager closed")

    def __enter__(self) -> CacheManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Internal ────────────────────────────────────────────────────

    def _clear_all(self) -> None:
        self._context.clear()
        self._provider.clear()
        self._config_cache.clear()
        self._metrics.reset()

    def _save_stats(self) -> None:
        document = PersistedCacheData(
            timestamp=datetime.now(timezone.utc),
            stats=self.get_stats(),
        )
        try:
            self._backend.save(document.model_dump_json(indent=2))  # type: ignore[union-attr]
        except OSError as exc:
            raise PersistenceError(
                "failed to save cache statistics",
                cause=exc,
                component="cache_manager",
                operation="close",
            ) from exc

    def _load_stats(self) -> Optional[PersistedCacheData]:
        if self._backend is None:
            return None
        try:
            if not self._backend.exists():
                return None
            return PersistedCacheData.model_validate_json(self._backend.load())
        except (OSError, KeyError, PydanticValidationError) as exc:
            # A damaged statistics file never blocks start-up
            log.warning("Failed to load persisted cache statistics: %s", exc)
            return None


def create_cache_manager(
    settings: AppSettings | None = None,
    *,
    backend: IStatsBackend | None = None,
) -> CacheManager:
    """Create a cache manager from ``AppSettings`` (defaults when None)."""
    if settings is None:
        from nlshell.core.config import AppSettings

        settings = AppSettings()

    return CacheManager(
        settings.cache,
        context_config=settings.context_cache,
        provider_config=settings.provider_cache,
        config_config=settings.config_cache,
        backend=backend,
    )
