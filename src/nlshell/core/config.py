"""Nested pydantic-settings configuration for the caching and context core.

Each group reads its own ``NLSHELL_<GROUP>_*`` env vars::

    export NLSHELL_CACHE_MAX_TOTAL_SIZE_BYTES=268435456
    export NLSHELL_CONTEXT_MAX_FILES=500
    export NLSHELL_PROVIDER_CACHE_DEFAULT_TTL_SECONDS=1800
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

_MB = 1024 * 1024


class StoreConfig(BaseSettings):
    """Limits for a single entry store.

    Env vars use ``NLSHELL_STORE_`` prefix. Domain caches subclass this with
    their own prefix and defaults.
    """

    model_config = {"env_prefix": "NLSHELL_STORE_"}

    max_size_bytes: int = Field(default=100 * _MB, gt=0)
    default_ttl_seconds: float = Field(default=1800.0, gt=0.0)
    cleanup_interval_seconds: float = Field(default=300.0, gt=0.0)
    max_entries: int = Field(default=10_000, gt=0)


class ContextCacheConfig(StoreConfig):
    """Context cache limits. Env vars use ``NLSHELL_CONTEXT_CACHE_`` prefix."""

    model_config = {"env_prefix": "NLSHELL_CONTEXT_CACHE_"}

    max_size_bytes: int = Field(default=50 * _MB, gt=0)
    default_ttl_seconds: float = Field(default=600.0, gt=0.0)
    cleanup_interval_seconds: float = Field(default=120.0, gt=0.0)
    max_entries: int = Field(default=1000, gt=0)


class ProviderCacheConfig(StoreConfig):
    """Provider-response cache limits. Env vars use ``NLSHELL_PROVIDER_CACHE_`` prefix."""

    model_config = {"env_prefix": "NLSHELL_PROVIDER_CACHE_"}

    max_size_bytes: int = Field(default=200 * _MB, gt=0)
    default_ttl_seconds: float = Field(default=3600.0, gt=0.0)
    cleanup_interval_seconds: float = Field(default=600.0, gt=0.0)
    max_entries: int = Field(default=5000, gt=0)


class ConfigCacheConfig(StoreConfig):
    """Config cache limits. Env vars use ``NLSHELL_CONFIG_CACHE_`` prefix."""

    model_config = {"env_prefix": "NLSHELL_CONFIG_CACHE_"}

    max_size_bytes: int = Field(default=10 * _MB, gt=0)
    default_ttl_seconds: float = Field(default=3600.0, gt=0.0)
    cleanup_interval_seconds: float = Field(default=900.0, gt=0.0)
    max_entries: int = Field(default=500, gt=0)


class CacheManagerConfig(BaseSettings):
    """Cache manager configuration.

    Env vars use ``NLSHELL_CACHE_`` prefix. Persistent storage is off by
    default; when enabled only statistics are written, never entries.
    """

    model_config = {"env_prefix": "NLSHELL_CACHE_"}

    enabled: bool = True
    persistent_storage: bool = False
    storage_path: Optional[Path] = None
    max_total_size_bytes: int = Field(default=500 * _MB, ge=0)


class GathererConfig(BaseSettings):
    """Context gathering limits and plugin toggles.

    Env vars use ``NLSHELL_CONTEXT_`` prefix.
    """

    model_config = {"env_prefix": "NLSHELL_CONTEXT_"}

    max_files: int = Field(default=1000, ge=0)
    max_depth: int = Field(default=3, ge=0)
    enable_plugins: bool = True
    plugin_dir: str = ""


class ObservabilityConfig(BaseSettings):
    """Logging configuration. Env vars use ``NLSHELL_OBSERVABILITY_`` prefix."""

    model_config = {"env_prefix": "NLSHELL_OBSERVABILITY_"}

    log_level: str = "INFO"
    # auto: console renderer on a terminal, JSON otherwise
    log_format: Literal["auto", "json", "console"] = "auto"


class AppSettings(BaseSettings):
    """Top-level settings aggregating all sub-configs.

    Each sub-config reads its own ``NLSHELL_<GROUP>_*`` env vars.
    """

    cache: CacheManagerConfig = Field(default_factory=CacheManagerConfig)
    context_cache: ContextCacheConfig = Field(default_factory=ContextCacheConfig)
    provider_cache: ProviderCacheConfig = Field(default_factory=ProviderCacheConfig)
    config_cache: ConfigCacheConfig = Field(default_factory=ConfigCacheConfig)
    context: GathererConfig = Field(default_factory=GathererConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
