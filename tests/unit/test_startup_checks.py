"""Tests for startup validation checks."""

from __future__ import annotations

import logging

import pytest

from nlshell.core.config import (
    AppSettings,
    CacheManagerConfig,
    ContextCacheConfig,
    GathererConfig,
)
from nlshell.core.exceptions import ConfigurationError
from nlshell.core.startup_checks import validate_settings


class TestPersistenceValidation:
    """Persistence settings should fail fast when no usable path is given."""

    def test_defaults_pass(self) -> None:
        validate_settings(AppSettings())  # Should not raise

    def test_persistence_without_path_rejected(self) -> None:
        settings = AppSettings(cache=CacheManagerConfig(persistent_storage=True))
        with pytest.raises(ConfigurationError, match="NLSHELL_CACHE_STORAGE_PATH is not set"):
            validate_settings(settings)

    def test_directory_as_path_rejected(self, tmp_path) -> None:
        settings = AppSettings(
            cache=CacheManagerConfig(persistent_storage=True, storage_path=tmp_path)
        )
        with pytest.raises(ConfigurationError, match="is a directory"):
            validate_settings(settings)

    def test_file_path_accepted(self, tmp_path) -> None:
        settings = AppSettings(
            cache=CacheManagerConfig(persistent_storage=True, storage_path=tmp_path / "stats.json")
        )
        validate_settings(settings)  # Should not raise


class TestPluginDirValidation:
    """A plugin directory that is a regular file should be rejected."""

    def test_file_as_plugin_dir_rejected(self, tmp_path) -> None:
        not_a_dir = tmp_path / "plugins"
        not_a_dir.write_text("")
        settings = AppSettings(context=GathererConfig(plugin_dir=str(not_a_dir)))
        with pytest.raises(ConfigurationError, match="is not a directory"):
            validate_settings(settings)

    def test_missing_plugin_dir_accepted(self, tmp_path) -> None:
        settings = AppSettings(context=GathererConfig(plugin_dir=str(tmp_path / "absent")))
        validate_settings(settings)  # Should not raise


class TestBudgetWarning:
    """A manager budget below the domain defaults should log a warning."""

    def test_small_budget_warns(self, caplog) -> None:
        settings = AppSettings(cache=CacheManagerConfig(max_total_size_bytes=1024 * 1024))
        with caplog.at_level(logging.WARNING, logger="nlshell.core.startup_checks"):
            validate_settings(settings)
        assert "limits the context cache" in caplog.text

    def test_generous_budget_is_quiet(self, caplog) -> None:
        settings = AppSettings(
            cache=CacheManagerConfig(max_total_size_bytes=4 * 1024 * 1024),
            context_cache=ContextCacheConfig(max_size_bytes=1024),
        )
        with caplog.at_level(logging.WARNING, logger="nlshell.core.startup_checks"):
            validate_settings(settings)
        assert "context cache" not in caplog.text
