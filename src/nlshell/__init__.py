"""nlshell: caching and context-gathering core of a natural-language shell assistant.

Typical wiring::

    from nlshell import AppSettings, create_cache_manager, create_context_gatherer

    settings = AppSettings()
    manager = create_cache_manager(settings)
    gatherer = create_context_gatherer(settings, manager)

    snapshot = gatherer.gather_context()
    ...
    manager.close()
"""

from __future__ import annotations

from nlshell.cache import (
    CacheManager,
    ConfigCache,
    ContextCache,
    EntryStore,
    InvalidationCriteria,
    MetricsTracker,
    ProviderCache,
    create_cache_manager,
)
from nlshell.context import ContextGatherer, IContextPlugin, PluginRegistry, create_context_gatherer
from nlshell.core.cancellation import CancelToken
from nlshell.core.config import AppSettings
from nlshell.core.exceptions import ErrorKind, ErrorSeverity, NLShellError
from nlshell.models import (
    CommandResponse,
    ContextSnapshot,
    FileInfo,
    GitContext,
    ProviderInfo,
    ValidationResponse,
)
from nlshell.providers import CachedProvider, ILLMProvider

__all__ = [
    "AppSettings",
    "create_cache_manager",
    "create_context_gatherer",
    "CacheManager",
    "ContextCache",
    "ProviderCache",
    "ConfigCache",
    "EntryStore",
    "MetricsTracker",
    "InvalidationCriteria",
    "ContextGatherer",
    "PluginRegistry",
    "IContextPlugin",
    "CancelToken",
    "ErrorKind",
    "ErrorSeverity",
    "NLShellError",
    "ContextSnapshot",
    "FileInfo",
    "GitContext",
    "CommandResponse",
    "ValidationResponse",
    "ProviderInfo",
    "CachedProvider",
    "ILLMProvider",
]
