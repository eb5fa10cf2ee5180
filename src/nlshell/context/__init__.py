"""Context gathering: plugin registry, gatherer and factory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nlshell.context.gatherer import ContextGatherer, filter_environment, scan_directory
from nlshell.context.protocols import IContextPlugin
from nlshell.context.registry import PluginInfo, PluginRegistry

if TYPE_CHECKING:
    from nlshell.cache.manager import CacheManager
    from nlshell.core.config import AppSettings

log = logging.getLogger(__name__)

__all__ = [
    "create_context_gatherer",
    "ContextGatherer",
    "IContextPlugin",
    "PluginInfo",
    "PluginRegistry",
    "filter_environment",
    "scan_directory",
]


def create_context_gatherer(
    settings: AppSettings | None = None,
    cache_manager: CacheManager | None = None,
) -> ContextGatherer:
    """Create a context gatherer from settings.

    Args:
        settings: An ``AppSettings`` instance. If None, defaults are used.
        cache_manager: When given, the gatherer shares its context cache;
            otherwise it owns a cache built from ``settings.context_cache``.
    """
    if settings is None:
        from nlshell.core.config import AppSettings

        settings = AppSettings()

    gatherer = ContextGatherer(
        cache_manager.context_cache if cache_manager is not None else None,
        PluginRegistry(),
        max_files=settings.context.max_files,
        max_depth=settings.context.max_depth,
        cache_config=settings.context_cache,
    )

    if settings.context.enable_plugins:
        from nlshell.plugins import register_builtin_plugins

        register_builtin_plugins(gatherer.registry, gatherer.context_cache)
        if settings.context.plugin_dir:
            gatherer.load_plugins(settings.context.plugin_dir)

    log.debug(
        "Context gatherer ready with %d plugin(s)",
        len(gatherer.registry),
    )
    return gatherer
