"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from nlshell.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from nlshell.core.config import AppSettings

log = logging.getLogger(__name__)


def validate_settings(settings: AppSettings) -> None:
    """Validate application settings at startup. Raises ConfigurationError on fatal misconfig."""
    _check_persistence(settings)
    _check_plugin_dir(settings)
    _check_budget(settings)


def _check_persistence(settings: AppSettings) -> None:
    """Reject persistent storage with nowhere to write, or a directory as the target file."""
    cache = settings.cache
    if not cache.persistent_storage:
        return
    if cache.storage_path is None or not str(cache.storage_path):
        raise ConfigurationError(
            "NLSHELL_CACHE_PERSISTENT_STORAGE=true but NLSHELL_CACHE_STORAGE_PATH is not set. "
            "Set a file path for the statistics document or disable persistent storage.",
            component="startup_checks",
        )
    if Path(cache.storage_path).is_dir():
        raise ConfigurationError(
            f"NLSHELL_CACHE_STORAGE_PATH={cache.storage_path} is a directory; "
            "it must name the statistics file.",
            component="startup_checks",
        )


def _check_plugin_dir(settings: AppSettings) -> None:
    plugin_dir = settings.context.plugin_dir
    if not plugin_dir:
        return
    path = Path(plugin_dir).expanduser()
    if path.exists() and not path.is_dir():
        raise ConfigurationError(
            f"NLSHELL_CONTEXT_PLUGIN_DIR={plugin_dir} exists but is not a directory.",
            component="startup_checks",
        )


def _check_budget(settings: AppSettings) -> None:
    """Warn when the global budget shrinks a domain cache below its own default."""
    total = settings.cache.max_total_size_bytes
    if total <= 0:
        return
    shares = {
        "context": (total // 4, settings.context_cache.max_size_bytes),
        "provider": (total // 2, settings.provider_cache.max_size_bytes),
        "config": (total // 4, settings.config_cache.max_size_bytes),
    }
    for name, (share, configured) in shares.items():
        if share < configured:
            log.warning(
                "NLSHELL_CACHE_MAX_TOTAL_SIZE_BYTES=%d limits the %s cache to %d bytes "
                "(configured %d).",
                total,
                name,
                share,
                configured,
            )
