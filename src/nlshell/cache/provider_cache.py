"""Provider-response domain cache: generated commands and validation verdicts.

Keys are opaque digests, so provider/model invalidation goes through a
``(provider, model) -> keys`` index maintained on every insert and pruned by
the store's ``on_remove`` listener.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from nlshell.cache.key_strategy import prompt_fingerprint, validation_key
from nlshell.cache.metrics import LookupKind, MetricsTracker
from nlshell.cache.models import StoreStats
from nlshell.cache.store import EntryStore
from nlshell.core.config import ProviderCacheConfig
from nlshell.core.exceptions import CacheValidationError
from nlshell.models import CommandResponse, ContextSnapshot, ValidationResponse

log = logging.getLogger(__name__)

COMMAND_TTL_SECONDS = 60 * 60
LOW_CONFIDENCE_TTL_SECONDS = 15 * 60
LOW_CONFIDENCE_THRESHOLD = 0.7

VALIDATION_TTL_SECONDS = 30 * 60
FAILED_VALIDATION_TTL_SECONDS = 10 * 60


def command_ttl(response: CommandResponse) -> int:
    """Low-confidence commands are kept for a quarter of the usual time."""
    if response.confidence < LOW_CONFIDENCE_THRESHOLD:
        return LOW_CONFIDENCE_TTL_SECONDS
    return COMMAND_TTL_SECONDS


def validation_ttl(response: ValidationResponse) -> int:
    return VALIDATION_TTL_SECONDS if response.is_correct else FAILED_VALIDATION_TTL_SECONDS


class ProviderCache:
    """Typed facade over an ``EntryStore`` for LLM provider responses."""

    def __init__(
        self,
        config: ProviderCacheConfig | None = None,
        *,
        metrics: MetricsTracker | None = None,
    ) -> None:
        self._metrics = metrics or MetricsTracker()
        self._index_lock = threading.Lock()
        self._model_keys: dict[tuple[str, str], set[str]] = {}
        self._key_models: dict[str, tuple[str, str]] = {}
        self._store: EntryStore[Any] = EntryStore(
            config or ProviderCacheConfig(),
            name="provider",
            on_remove=self._forget_key,
        )

    @property
    def metrics(self) -> MetricsTracker:
        return self._metrics

    @property
    def store(self) -> EntryStore[Any]:
        return self._store

    # ── Command responses ───────────────────────────────────────────

    def get_command_response(
        self, prompt: str, snapshot: ContextSnapshot, provider: str, model: str
    ) -> CommandResponse | None:
        value, hit = self._store.get(prompt_fingerprint(prompt, snapshot, provider, model))
        if hit and isinstance(value, CommandResponse):
            self._metrics.record_hit(LookupKind.COMMAND)
            return value
        self._metrics.record_miss(LookupKind.COMMAND)
        return None

    def set_command_response(
        self,
        prompt: str,
        snapshot: ContextSnapshot,
        provider: str,
        model: str,
        response: CommandResponse,
    ) -> None:
        key = prompt_fingerprint(prompt, snapshot, provider, model)
        self._set_indexed(provider, model, key, response, command_ttl(response))

    # ── Validation responses ────────────────────────────────────────

    def get_validation_response(
        self, command: str, output: str, intent: str, provider: str, model: str
    ) -> ValidationResponse | None:
        value, hit = self._store.get(validation_key(command, output, intent, provider, model))
        if hit and isinstance(value, ValidationResponse):
            self._metrics.record_hit(LookupKind.VALIDATION)
            return value
        self._metrics.record_miss(LookupKind.VALIDATION)
        return None

    def set_validation_response(
        self,
        command: str,
        output: str,
        intent: str,
        provider: str,
        model: str,
        response: ValidationResponse,
    ) -> None:
        key = validation_key(command, output, intent, provider, model)
        self._set_indexed(provider, model, key, response, validation_ttl(response))

    # ── Invalidation ────────────────────────────────────────────────

    def invalidate_provider(self, provider: str) -> int:
        """Drop every response produced by ``provider``, whatever the model."""
        with self._index_lock:
            groups = [group for group in self._model_keys if group[0] == provider]
            keys = self._pop_groups(groups)
        removed = self._store.delete_many(keys)
        log.debug("Invalidated %d responses for provider %s", removed, provider)
        return removed

    def invalidate_model(self, provider: str, model: str) -> int:
        """Drop every response produced by ``model`` of ``provider``."""
        with self._index_lock:
            keys = self._pop_groups([(provider, model)])
        removed = self._store.delete_many(keys)
        log.debug("Invalidated %d responses for %s/%s", removed, provider, model)
        return removed

    # ── Statistics & lifecycle ──────────────────────────────────────

    def hit_rate(self) -> float:
        """Lookup hit rate over command and validation reads."""
        return self._metrics.hit_rate(LookupKind.COMMAND, LookupKind.VALIDATION)

    def clear(self) -> None:
        self._store.clear()
        with self._index_lock:
            self._model_keys.clear()
            self._key_models.clear()

    def stats(self) -> StoreStats:
        return self._store.stats()

    def close(self) -> None:
        self._store.close()

    # ── Internal ────────────────────────────────────────────────────

    def _set_indexed(self, provider: str, model: str, key: str, value: Any, ttl: int) -> None:
        # indexed first so an eviction racing the insert always finds the key
        previous = self._index((provider, model), key)
        try:
            self._store.set(key, value, ttl)
        except CacheValidationError:
            # a rejected set leaves any previous entry in place
            if previous is None:
                self._forget_key(key)
            else:
                self._index(previous, key)
            raise

    def _index(self, group: tuple[str, str], key: str) -> tuple[str, str] | None:
        with self._index_lock:
            previous = self._key_models.get(key)
            if previous is not None and previous != group:
                self._discard(previous, key)
            self._model_keys.setdefault(group, set()).add(key)
            self._key_models[key] = group
        return previous

    def _pop_groups(self, groups: list[tuple[str, str]]) -> set[str]:
        # caller holds the index lock
        keys: set[str] = set()
        for group in groups:
            for key in self._model_keys.pop(group, ()):
                self._key_models.pop(key, None)
                keys.add(key)
        return keys

    def _discard(self, group: tuple[str, str], key: str) -> None:
        keys = self._model_keys.get(group)
        if keys is not None:
            keys.discard(key)
            if not keys:
                del self._model_keys[group]

    def _forget_key(self, key: str) -> None:
        # Called by the store under its write lock
        with self._index_lock:
            group = self._key_models.pop(key, None)
            if group is not None:
                self._discard(group, key)
