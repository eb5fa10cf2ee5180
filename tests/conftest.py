"""Shared fixtures for nlshell tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterator

import pytest

from nlshell.cache.manager import CacheManager
from nlshell.cache.store import EntryStore
from nlshell.core.config import CacheManagerConfig, StoreConfig
from nlshell.models import ContextSnapshot, GitContext
from tests.fakes.fake_clock import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_store(clock: FakeClock) -> Iterator[Callable[..., EntryStore[Any]]]:
    """Factory for stores driven by the fake clock; every store is closed on teardown."""
    stores: list[EntryStore[Any]] = []

    def _make(**limits: Any) -> EntryStore[Any]:
        on_remove = limits.pop("on_remove", None)
        store: EntryStore[Any] = EntryStore(
            StoreConfig(**limits),
            name="test",
            on_remove=on_remove,
            clock=clock,
        )
        stores.append(store)
        return store

    yield _make
    for store in stores:
        store.close()


@pytest.fixture
def snapshot() -> ContextSnapshot:
    """Snapshot of a small git project with two environment variables."""
    return ContextSnapshot(
        working_directory="/home/dev/project",
        git=GitContext(
            is_repository=True,
            current_branch="main",
            working_tree_status="clean",
        ),
        environment={"HOME": "/home/dev", "SHELL": "/bin/zsh"},
    )


@pytest.fixture
def manager() -> Iterator[CacheManager]:
    """In-memory cache manager with persistence off."""
    mgr = CacheManager(CacheManagerConfig(persistent_storage=False))
    yield mgr
    mgr.close()


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A small project tree that is also the current working directory.

    Layout::

        project/
            README.md
            .hidden/secret.txt
            src/
                main.py
                pkg/
                    util.py
    """
    root = tmp_path / "project"
    (root / "src" / "pkg").mkdir(parents=True)
    (root / ".hidden").mkdir()
    (root / "README.md").write_text("# demo\n")
    (root / ".hidden" / "secret.txt").write_text("token\n")
    (root / "src" / "main.py").write_text("print('hi')\n")
    (root / "src" / "pkg" / "util.py").write_text("X = 1\n")
    monkeypatch.chdir(root)
    return root
