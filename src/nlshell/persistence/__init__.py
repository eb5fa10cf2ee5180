"""Pluggable backends for the persisted cache statistics document."""

from __future__ import annotations

from nlshell.persistence.file_backend import FileStatsBackend
from nlshell.persistence.memory_backend import MemoryStatsBackend
from nlshell.persistence.protocols import IStatsBackend

__all__ = ["IStatsBackend", "FileStatsBackend", "MemoryStatsBackend"]
