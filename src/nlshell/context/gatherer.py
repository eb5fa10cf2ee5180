"""Context gatherer: builds the snapshot handed to the LLM for one request.

Steps, in order: read the working directory, scan the filesystem (cached
and freshness-checked), filter the environment (cached), attach the cached
git view, then fan out to the registered plugins (each output cached per
plugin and directory).
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Mapping

from nlshell.cache.context_cache import ContextCache, directory_mod_time
from nlshell.cache.models import FileSystemContext, StoreStats
from nlshell.context.protocols import IContextPlugin
from nlshell.context.registry import PluginRegistry
from nlshell.core.cancellation import CancelToken, ensure_token
from nlshell.core.config import ContextCacheConfig
from nlshell.core.exceptions import CacheValidationError, OperationCancelledError, ValidationError
from nlshell.core.types import EnvMap, PluginData
from nlshell.models import ContextSnapshot, FileInfo

log = logging.getLogger(__name__)

DEFAULT_MAX_FILES = 1000
DEFAULT_MAX_DEPTH = 3

# Environment variables useful for composing shell commands
ALLOWED_ENV_VARS: tuple[str, ...] = (
    "PATH",
    "HOME",
    "USER",
    "SHELL",
    "PWD",
    "OLDPWD",
    "TERM",
    "LANG",
    "LC_ALL",
    "EDITOR",
    "PAGER",
    "TMPDIR",
    "TMP",
    "TEMP",
    # Development
    "GOPATH",
    "GOROOT",
    "NODE_ENV",
    "PYTHON_PATH",
    "JAVA_HOME",
    "MAVEN_HOME",
    "GRADLE_HOME",
    # Containers
    "DOCKER_HOST",
    "KUBERNETES_SERVICE_HOST",
    # Cloud
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "GOOGLE_CLOUD_PROJECT",
    "AZURE_SUBSCRIPTION_ID",
)


def filter_environment(environ: Mapping[str, str] | None = None) -> EnvMap:
    """Keep only allow-listed variables with non-empty values."""
    source = os.environ if environ is None else environ
    return {name: source[name] for name in ALLOWED_ENV_VARS if source.get(name)}


def _file_info(name: str, path: str, st: os.stat_result, is_dir: bool) -> FileInfo:
    return FileInfo(
        name=name,
        path=path,
        is_dir=is_dir,
        size=st.st_size,
        mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
    )


def scan_directory(
    root: str,
    *,
    max_files: int = DEFAULT_MAX_FILES,
    max_depth: int = DEFAULT_MAX_DEPTH,
    cancel: CancelToken | None = None,
) -> list[FileInfo]:
    """Walk ``root`` pre-order in lexicographic name order.

    The root is recorded first at depth 0; an entry's depth is its number
    of path components below the root. Hidden names (leading ``.``) are
    skipped and never descended, except for the root itself. Unreadable
    entries are skipped, symlinks are not followed, and the walk stops once
    ``max_files`` entries are recorded.

    Raises:
        OperationCancelledError: ``cancel`` fired during the walk.
        OSError: The root itself cannot be stat'ed.
    """
    cancel = ensure_token(cancel)
    files: list[FileInfo] = []
    if max_files <= 0:
        return files

    cancel.raise_if_cancelled("scan_directory")
    root_stat = os.stat(root)
    root_name = os.path.basename(os.path.normpath(root)) or root
    files.append(_file_info(root_name, root, root_stat, is_dir=os.path.isdir(root)))

    def walk(directory: str, depth: int) -> None:
        # depth is the depth of the entries inside ``directory``
        if depth > max_depth:
            return
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError:
            return

        for entry in entries:
            cancel.raise_if_cancelled("scan_directory")
            if len(files) >= max_files:
                return
            if entry.name.startswith("."):
                continue
            try:
                st = entry.stat(follow_symlinks=False)
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            files.append(_file_info(entry.name, entry.path, st, is_dir))
            if is_dir:
                walk(entry.path, depth + 1)

    if os.path.isdir(root):
        walk(root, 1)
    return files


class ContextGatherer:
    """Produces ``ContextSnapshot``s, reusing cached pieces where still valid.

    Args:
        context_cache: Shared context cache. When omitted the gatherer builds
            (and on ``close()`` closes) its own from ``cache_config``.
        registry: Plugin registry; a fresh empty one when omitted.
        max_files: Maximum number of entries recorded by the walk.
        max_depth: Maximum walk depth below the working directory.
        cache_config: Limits for a gatherer-owned context cache.
    """

    def __init__(
        self,
        context_cache: ContextCache | None = None,
        registry: PluginRegistry | None = None,
        *,
        max_files: int = DEFAULT_MAX_FILES,
        max_depth: int = DEFAULT_MAX_DEPTH,
        cache_config: ContextCacheConfig | None = None,
    ) -> None:
        self._owns_cache = context_cache is None
        self._cache = context_cache if context_cache is not None else ContextCache(cache_config)
        self._registry = registry if registry is not None else PluginRegistry()
        self._max_files = max_files
        self._max_depth = max_depth

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    @property
    def context_cache(self) -> ContextCache:
        return self._cache

    @property
    def max_files(self) -> int:
        return self._max_files

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def gather_context(self, cancel: CancelToken | None = None) -> ContextSnapshot:
        """Collect the current context snapshot.

        Raises:
            ValidationError: The working directory cannot be read.
            OperationCancelledError: ``cancel`` fired before or during the walk.
        """
        cancel = ensure_token(cancel)
        try:
            working_dir = os.getcwd()
        except OSError as exc:
            raise ValidationError(
                "failed to get working directory",
                cause=exc,
                component="context_gatherer",
                operation="gather_context",
            ) from exc

        snapshot = ContextSnapshot(working_directory=working_dir)
        cancel.raise_if_cancelled("gather_context")

        snapshot.files = self._filesystem_info(cancel, working_dir)
        snapshot.environment = self._environment_info()
        snapshot.git = self._cache.get_git_context(working_dir)
        snapshot.plugin_data = self._plugin_info(cancel, snapshot)
        return snapshot

    def register_plugin(self, plugin: IContextPlugin) -> None:
        self._registry.register(plugin)

    def load_plugins(self, plugin_dir: str) -> int:
        return self._registry.load_from_directory(plugin_dir)

    def invalidate_cache(self, working_dir: str) -> int:
        return self._cache.invalidate_directory(working_dir)

    def cache_stats(self) -> StoreStats:
        return self._cache.stats()

    def close(self) -> None:
        """Close the context cache if this gatherer created it."""
        if self._owns_cache:
            self._cache.close()

    def __enter__(self) -> ContextGatherer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Steps ───────────────────────────────────────────────────────

    def _filesystem_info(self, cancel: CancelToken, working_dir: str) -> list[FileInfo]:
        cached = self._cache.get_filesystem_context(working_dir, self._max_files, self._max_depth)
        if cached is not None:
            return list(cached.files)

        try:
            # mtime taken before the walk so changes made during it invalidate the scan
            mod_time = directory_mod_time(working_dir)
            files = scan_directory(
                working_dir,
                max_files=self._max_files,
                max_depth=self._max_depth,
                cancel=cancel,
            )
        except OperationCancelledError:
            raise
        except OSError as exc:
            log.warning("Filesystem scan of %s failed: %s", working_dir, exc)
            return []

        fs_context = FileSystemContext(
            working_dir=working_dir,
            files=files,
            max_files=self._max_files,
            max_depth=self._max_depth,
            directory_mod_time=mod_time,
        )
        try:
            self._cache.set_filesystem_context(working_dir, self._max_files, self._max_depth, fs_context)
        except CacheValidationError as exc:
            log.warning("Failed to cache filesystem context for %s: %s", working_dir, exc)
        return files

    def _environment_info(self) -> EnvMap:
        cached = self._cache.get_environment_context()
        if cached is not None:
            return dict(cached)

        env = filter_environment()
        try:
            self._cache.set_environment_context(env)
        except CacheValidationError as exc:
            log.warning("Failed to cache environment context: %s", exc)
        return env

    def _plugin_info(self, cancel: CancelToken, snapshot: ContextSnapshot) -> PluginData:
        working_dir = snapshot.working_directory
        results: PluginData = {}

        for plugin in self._registry.get_plugins():
            if cancel.cancelled:
                log.debug("Plugin fan-out cancelled, returning partial snapshot")
                break

            name = plugin.name
            cached = self._cache.get_plugin_context(name, working_dir)
            if cached is not None:
                results[name] = cached
                continue

            data, ok = self._registry.run_plugin(plugin, cancel, snapshot)
            if not ok or data is None:
                continue
            results[name] = data

            try:
                self._cache.set_plugin_context(
                    name, working_dir, data, getattr(plugin, "cache_ttl_seconds", None)
                )
            except CacheValidationError as exc:
                log.warning("Failed to cache output of plugin %s: %s", name, exc)

        return results
