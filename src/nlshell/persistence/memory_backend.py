"""In-memory statistics backend, ideal for tests."""

from __future__ import annotations

import logging

log = logging.getLogger(__name__)


class MemoryStatsBackend:
    """Keeps the statistics document in memory; nothing touches disk."""

    def __init__(self, initial: str | None = None) -> None:
        self._data = initial
        self.save_count = 0

    def save(self, data: str) -> None:
        self._data = data
        self.save_count += 1
        log.debug("Saved cache statistics to memory (%d bytes)", len(data))

    def load(self) -> str:
        if self._data is None:
            raise KeyError("No statistics saved in memory store")
        return self._data

    def exists(self) -> bool:
        return self._data is not None
