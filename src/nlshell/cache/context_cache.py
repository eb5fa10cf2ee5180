"""Context domain cache: filesystem scans, git views, plugin output, environment.

A ``directory -> keys`` index is kept for every directory-scoped entry so
``invalidate_directory`` drops exactly that directory's data. The index is
pruned through the store's ``on_remove`` listener whenever an entry leaves
the store for any other reason (eviction, expiry, delete, clear).
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

from nlshell.cache.key_strategy import ENVIRONMENT_KEY, filesystem_key, git_key, plugin_key
from nlshell.cache.metrics import LookupKind, MetricsTracker
from nlshell.cache.models import FileSystemContext, StoreStats
from nlshell.cache.store import EntryStore
from nlshell.core.config import ContextCacheConfig
from nlshell.core.exceptions import CacheValidationError
from nlshell.core.types import EnvMap
from nlshell.models import GitContext

log = logging.getLogger(__name__)

FILESYSTEM_TTL_SECONDS = 5 * 60
GIT_TTL_SECONDS = 2 * 60
PLUGIN_TTL_SECONDS = 15 * 60
ENVIRONMENT_TTL_SECONDS = 30 * 60

# Hard age ceiling for a cached directory scan, independent of its TTL
MAX_SCAN_AGE = timedelta(minutes=10)


def directory_mod_time(path: str) -> datetime:
    """Modification time of ``path`` as an aware UTC datetime."""
    return datetime.fromtimestamp(os.stat(path).st_mtime, tz=timezone.utc)


def is_filesystem_context_fresh(fs_context: FileSystemContext, working_dir: str) -> bool:
    """True while the directory exists, is unmodified and the scan is young enough."""
    if fs_context.directory_mod_time is None:
        return False
    try:
        current = directory_mod_time(working_dir)
    except OSError:
        return False
    if current > fs_context.directory_mod_time:
        return False
    return datetime.now(timezone.utc) - fs_context.scanned_at < MAX_SCAN_AGE


class ContextCache:
    """Typed facade over an ``EntryStore`` for context-gathering results."""

    def __init__(
        self,
        config: ContextCacheConfig | None = None,
        *,
        metrics: MetricsTracker | None = None,
    ) -> None:
        self._metrics = metrics
        self._index_lock = threading.Lock()
        self._dir_keys: dict[str, set[str]] = {}
        self._key_dirs: dict[str, str] = {}
        self._store: EntryStore[Any] = EntryStore(
            config or ContextCacheConfig(),
            name="context",
            on_remove=self._forget_key,
        )

    @property
    def store(self) -> EntryStore[Any]:
        return self._store

    # ── Filesystem scans ────────────────────────────────────────────

    def get_filesystem_context(
        self, working_dir: str, max_files: int, max_depth: int
    ) -> FileSystemContext | None:
        """Return a cached scan only if it is still fresh; stale scans are dropped."""
        key = filesystem_key(working_dir, max_files, max_depth)
        value, hit = self._store.get(key)
        if hit and isinstance(value, FileSystemContext):
            if is_filesystem_context_fresh(value, working_dir):
                self._record(True)
                return value
            log.debug("Dropping stale filesystem context for %s", working_dir)
            self._store.delete(key)
        self._record(False)
        return None

    def set_filesystem_context(
        self, working_dir: str, max_files: int, max_depth: int, fs_context: FileSystemContext
    ) -> None:
        key = filesystem_key(working_dir, max_files, max_depth)
        self._set_indexed(working_dir, key, fs_context, FILESYSTEM_TTL_SECONDS)

    # ── Git ─────────────────────────────────────────────────────────

    def get_git_context(self, working_dir: str) -> GitContext | None:
        value, hit = self._store.get(git_key(working_dir))
        found = hit and isinstance(value, GitContext)
        self._record(found)
        return value if found else None

    def set_git_context(self, working_dir: str, git_context: GitContext) -> None:
        key = git_key(working_dir)
        self._set_indexed(working_dir, key, git_context, GIT_TTL_SECONDS)

    # ── Plugins ─────────────────────────────────────────────────────

    def get_plugin_context(self, plugin_name: str, working_dir: str) -> Any | None:
        value, hit = self._store.get(plugin_key(plugin_name, working_dir))
        self._record(hit)
        return value if hit else None

    def set_plugin_context(
        self,
        plugin_name: str,
        working_dir: str,
        data: Any,
        ttl_seconds: float | None = None,
    ) -> None:
        """Cache one plugin's output; ``ttl_seconds`` overrides the 15-minute default."""
        key = plugin_key(plugin_name, working_dir)
        self._set_indexed(working_dir, key, data, ttl_seconds or PLUGIN_TTL_SECONDS)

    # ── Environment ─────────────────────────────────────────────────

    def get_environment_context(self) -> EnvMap | None:
        value, hit = self._store.get(ENVIRONMENT_KEY)
        found = hit and isinstance(value, dict)
        self._record(found)
        return value if found else None

    def set_environment_context(self, env: EnvMap) -> None:
        self._store.set(ENVIRONMENT_KEY, env, ENVIRONMENT_TTL_SECONDS)

    # ── Invalidation & lifecycle ────────────────────────────────────

    def invalidate_directory(self, working_dir: str) -> int:
        """Drop every entry scoped to ``working_dir``; return how many were removed.

        The process-wide environment snapshot is never affected.
        """
        with self._index_lock:
            keys = self._dir_keys.pop(working_dir, set())
            for key in keys:
                self._key_dirs.pop(key, None)
        # index lock released before taking the store's write lock
        removed = self._store.delete_many(keys)
        log.debug("Invalidated %d context entries for %s", removed, working_dir)
        return removed

    def keys_for_directory(self, working_dir: str) -> set[str]:
        with self._index_lock:
            return set(self._dir_keys.get(working_dir, ()))

    def clear(self) -> None:
        self._store.clear()
        with self._index_lock:
            self._dir_keys.clear()
            self._key_dirs.clear()

    def stats(self) -> StoreStats:
        return self._store.stats()

    def close(self) -> None:
        self._store.close()

    # ── Internal ────────────────────────────────────────────────────

    def _record(self, hit: bool) -> None:
        if self._metrics is None:
            return
        if hit:
            self._metrics.record_hit(LookupKind.CONTEXT)
        else:
            self._metrics.record_miss(LookupKind.CONTEXT)

    def _set_indexed(self, working_dir: str, key: str, value: Any, ttl: float) -> None:
        # indexed first so an eviction racing the insert always finds the key
        with self._index_lock:
            known = key in self._key_dirs
            self._dir_keys.setdefault(working_dir, set()).add(key)
            self._key_dirs[key] = working_dir
        try:
            self._store.set(key, value, ttl)
        except CacheValidationError:
            # a rejected set leaves any previous entry in place
            if not known:
                self._forget_key(key)
            raise

    def _forget_key(self, key: str) -> None:
        # Called by the store under its write lock
        with self._index_lock:
            working_dir = self._key_dirs.pop(key, None)
            if working_dir is None:
                return
            keys = self._dir_keys.get(working_dir)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._dir_keys[working_dir]
