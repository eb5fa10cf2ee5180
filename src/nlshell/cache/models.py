"""Data models for the cache layer: cached shapes, statistics and criteria."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from nlshell.models import FileInfo


class FileSystemContext(BaseModel):
    """Cached result of a directory scan.

    Valid only while the directory exists, its mtime has not advanced past
    ``directory_mod_time`` and the scan is younger than the age ceiling.
    """

    working_dir: str
    files: list[FileInfo] = Field(default_factory=list)
    max_files: int
    max_depth: int
    scanned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    directory_mod_time: Optional[datetime] = None


class StoreStats(BaseModel):
    """Point-in-time statistics for one entry store."""

    entries: int = 0
    total_size: int = 0
    max_size: int = 0
    max_entries: int = 0
    total_access: int = 0
    expired_entries: int = 0


class CacheMetrics(BaseModel):
    """Hit/miss counters and response latency recorded by the metrics tracker."""

    command_hits: int = 0
    command_misses: int = 0
    validation_hits: int = 0
    validation_misses: int = 0
    context_hits: int = 0
    context_misses: int = 0
    total_hits: int = 0
    total_misses: int = 0
    hit_rate: float = 0.0
    response_count: int = 0
    average_response_time_ms: float = 0.0
    recent_average_response_time_ms: float = 0.0


class CombinedStats(BaseModel):
    """Statistics for every domain cache plus the shared metrics."""

    context: StoreStats = Field(default_factory=StoreStats)
    provider: StoreStats = Field(default_factory=StoreStats)
    config: StoreStats = Field(default_factory=StoreStats)
    metrics: CacheMetrics = Field(default_factory=CacheMetrics)

    @property
    def total_size(self) -> int:
        return self.context.total_size + self.provider.total_size + self.config.total_size

    @property
    def total_entries(self) -> int:
        return self.context.entries + self.provider.entries + self.config.entries


class PersistedCacheData(BaseModel):
    """The only document written to disk: statistics, never entries."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stats: CombinedStats = Field(default_factory=CombinedStats)


@dataclasses.dataclass(frozen=True)
class InvalidationCriteria:
    """Which cached data to drop. Empty fields are ignored."""

    directory: str = ""
    provider: str = ""
    model: str = ""
    config_key: str = ""
    clear_all: bool = False
