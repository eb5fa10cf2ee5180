"""Expiring, size-bounded, LRU-evicting entry store with a background sweeper.

Thread-safe via a reader-writer lock: reads share the lock, every mutation
takes it exclusively. One daemon sweeper thread per store removes expired
entries every ``cleanup_interval_seconds`` until ``close()`` is called.
"""

from __future__ import annotations

import copy
import dataclasses
import itertools
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Generic, Iterable, Iterator, TypeVar

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_json

from nlshell.cache.models import StoreStats
from nlshell.core.config import StoreConfig
from nlshell.core.exceptions import CacheEntryTooLargeError, CacheValidationError

log = logging.getLogger(__name__)

V = TypeVar("V")


class ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers.

    Not reentrant: a thread must not re-acquire either side while holding it.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclasses.dataclass
class CacheEntry(Generic[V]):
    """A cached value plus the bookkeeping used for expiry and eviction.

    Timestamps are ``time.monotonic()`` seconds so they are immune to
    wall-clock adjustments.
    """

    key: str
    value: V
    created_at: float
    expires_at: float
    last_access: float
    size: int
    access_count: int = 0
    access_seq: int = 0

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now

    def touch(self, now: float, seq: int) -> None:
        self.last_access = now
        self.access_count += 1
        self.access_seq = seq

    @property
    def lru_rank(self) -> tuple[float, int]:
        # access_seq breaks ties between equal timestamps deterministically
        return (self.last_access, self.access_seq)


def estimate_size(value: Any) -> int:
    """Size of ``value`` as the byte length of its canonical JSON encoding."""
    try:
        return len(to_json(value))
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise CacheValidationError(
            "failed to calculate entry size",
            cause=exc,
            operation="estimate_size",
        ) from exc


def detach(value: V) -> V:
    """Deep copy of ``value`` so callers never share an instance with the store."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    return copy.deepcopy(value)


class EntryStore(Generic[V]):
    """Generic key -> value store with TTL expiry, byte/entry limits and LRU eviction.

    Invariants after every mutation: ``total_size`` equals the sum of entry
    sizes, the entry count is at most ``max_entries`` and ``total_size`` is at
    most ``max_size_bytes``.

    ``on_remove`` (if given) is called with every key that leaves the store
    through delete, eviction, expiry or clear. Replacing a key in ``set`` is
    not a removal. The callback runs under the store's write lock and must
    not call back into the store.

    Values are copied on the way in and out, so a caller mutating what it
    stored or read never changes the entry or its recorded size.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        name: str = "cache",
        on_remove: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or StoreConfig()
        self._name = name
        self._on_remove = on_remove
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}
        self._total_size = 0
        self._lock = ReadWriteLock()
        self._access_seq = itertools.count(1)
        self._stop = threading.Event()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name=f"{name}-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._stop.is_set()

    # ── Reads ───────────────────────────────────────────────────────

    def get(self, key: str) -> tuple[V | None, bool]:
        """Return ``(value, True)`` for a live entry, ``(None, False)`` otherwise.

        Expired entries are left in place; the next ``set`` or sweep reclaims
        them so that reads never need the exclusive lock. The touch below
        mutates the entry under the shared lock: a benign race, since
        ``last_access``/``access_count`` only steer eviction.
        """
        with self._lock.read_lock():
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            now = self._clock()
            if entry.is_expired(now):
                return None, False
            entry.touch(now, next(self._access_seq))
            value = entry.value
        return detach(value), True

    def keys(self) -> list[str]:
        with self._lock.read_lock():
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock.read_lock():
            return len(self._entries)

    def stats(self) -> StoreStats:
        with self._lock.read_lock():
            now = self._clock()
            return StoreStats(
                entries=len(self._entries),
                total_size=self._total_size,
                max_size=self._config.max_size_bytes,
                max_entries=self._config.max_entries,
                total_access=sum(e.access_count for e in self._entries.values()),
                expired_entries=sum(1 for e in self._entries.values() if e.is_expired(now)),
            )

    # ── Mutations ───────────────────────────────────────────────────

    def set(self, key: str, value: V, ttl_seconds: float | None = None) -> None:
        """Insert or replace ``key``, evicting expired then LRU entries to make room.

        Raises:
            CacheValidationError: The value cannot be encoded or the TTL is not positive.
            CacheEntryTooLargeError: The value alone exceeds ``max_size_bytes``.
        """
        ttl = self._config.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise CacheValidationError(
                f"ttl must be positive, got {ttl}",
                context={"key": key, "store": self._name},
            )

        size = estimate_size(value)
        if size > self._config.max_size_bytes:
            raise CacheEntryTooLargeError(
                f"entry size {size} exceeds maximum cache size {self._config.max_size_bytes}",
                context={"store": self._name, "size": size},
            )
        value = detach(value)

        with self._lock.write_lock():
            existing = self._entries.pop(key, None)
            if existing is not None:
                self._total_size -= existing.size

            now = self._clock()
            self._reclaim(size, now)

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                expires_at=now + ttl,
                last_access=now,
                size=size,
                access_seq=next(self._access_seq),
            )
            self._total_size += size

    def delete(self, key: str) -> bool:
        """Remove ``key``; return whether it was present."""
        with self._lock.write_lock():
            return self._remove(key)

    def delete_many(self, keys: Iterable[str]) -> int:
        """Remove every key in ``keys`` under one exclusive section."""
        with self._lock.write_lock():
            return sum(1 for key in keys if self._remove(key))

    def delete_where(self, predicate: Callable[[str], bool]) -> int:
        """Remove every key for which ``predicate(key)`` is true."""
        with self._lock.write_lock():
            doomed = [key for key in self._entries if predicate(key)]
            for key in doomed:
                self._remove(key)
            return len(doomed)

    def clear(self) -> None:
        with self._lock.write_lock():
            for key in list(self._entries):
                self._remove(key)
            self._total_size = 0

    def purge_expired(self) -> int:
        """Remove all expired entries now; return how many were dropped."""
        with self._lock.write_lock():
            return self._purge_expired(self._clock())

    # ── Lifecycle ───────────────────────────────────────────────────

    def close(self) -> None:
        """Stop the sweeper and wait for it to exit. Safe to call twice."""
        self._stop.set()
        if self._sweeper.is_alive() and self._sweeper is not threading.current_thread():
            self._sweeper.join()

    def __enter__(self) -> EntryStore[V]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Internal (caller holds the write lock) ──────────────────────

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_size -= entry.size
        if self._on_remove is not None:
            try:
                self._on_remove(key)
            except Exception:
                log.exception("on_remove listener failed for store %s", self._name)
        return True

    def _purge_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)
        return len(expired)

    def _reclaim(self, incoming: int, now: float) -> None:
        self._purge_expired(now)

        evicted = 0
        while self._entries and (
            self._total_size + incoming > self._config.max_size_bytes
            or len(self._entries) + 1 > self._config.max_entries
        ):
            lru_key = min(self._entries, key=lambda k: self._entries[k].lru_rank)
            self._remove(lru_key)
            evicted += 1

        if evicted:
            log.debug("Store %s evicted %d LRU entries", self._name, evicted)

    def _sweep_loop(self) -> None:
        # stop is checked between ticks so shutdown waits at most one interval
        while not self._stop.wait(self._config.cleanup_interval_seconds):
            removed = self.purge_expired()
            if removed:
                log.debug("Store %s swept %d expired entries", self._name, removed)
