"""Tests for the context plugin registry."""

from __future__ import annotations

import logging
import textwrap

import pytest

from nlshell.context.registry import PluginInfo, PluginRegistry
from nlshell.core.cancellation import CancelToken
from nlshell.core.exceptions import (
    PluginNotFoundError,
    PluginRegistrationError,
    ValidationError,
)
from nlshell.models import ContextSnapshot
from tests.fakes.fake_plugins import CancellingPlugin, FailingPlugin, NonePlugin, StaticPlugin


@pytest.fixture
def base() -> ContextSnapshot:
    return ContextSnapshot(working_directory="/work")


class TestRegistration:
    """Registration should validate plugins and reject duplicate names."""

    def test_sorted_by_descending_priority(self) -> None:
        registry = PluginRegistry()
        registry.register(StaticPlugin("low", 10))
        registry.register(StaticPlugin("high", 30))
        registry.register(StaticPlugin("mid", 20))
        assert [p.name for p in registry.get_plugins()] == ["high", "mid", "low"]

    def test_equal_priorities_keep_registration_order(self) -> None:
        registry = PluginRegistry()
        for name in ("first", "second", "third"):
            registry.register(StaticPlugin(name, 50))
        registry.register(StaticPlugin("top", 99))
        assert [p.name for p in registry.get_plugins()] == ["top", "first", "second", "third"]

    def test_duplicate_name_rejected(self) -> None:
        registry = PluginRegistry()
        registry.register(StaticPlugin("git", 1))
        with pytest.raises(PluginRegistrationError, match="already registered"):
            registry.register(StaticPlugin("git", 2))
        assert len(registry) == 1

    def test_none_rejected(self) -> None:
        with pytest.raises(PluginRegistrationError, match="cannot be None"):
            PluginRegistry().register(None)

    def test_object_without_protocol_rejected(self) -> None:
        with pytest.raises(PluginRegistrationError):
            PluginRegistry().register(object())

    def test_registration_errors_are_validation_errors(self) -> None:
        with pytest.raises(ValidationError):
            PluginRegistry().register(None)

    def test_plugin_info(self) -> None:
        registry = PluginRegistry()
        registry.register(StaticPlugin("a", 5))
        assert registry.plugin_info() == [PluginInfo(name="a", priority=5)]


class TestLookupAndRemoval:
    """Plugins should be retrievable by name and in priority order."""

    def test_get_and_remove(self) -> None:
        registry = PluginRegistry()
        plugin = StaticPlugin("a", 1)
        registry.register(plugin)
        assert registry.get("a") is plugin
        registry.remove("a")
        assert len(registry) == 0

    def test_name_reusable_after_removal(self) -> None:
        registry = PluginRegistry()
        registry.register(StaticPlugin("a", 1))
        registry.remove("a")
        registry.register(StaticPlugin("a", 2))
        assert registry.get("a").priority == 2

    def test_unknown_name(self) -> None:
        registry = PluginRegistry()
        with pytest.raises(PluginNotFoundError):
            registry.get("missing")
        with pytest.raises(PluginNotFoundError):
            registry.remove("missing")

    def test_get_plugins_returns_copy(self) -> None:
        registry = PluginRegistry()
        registry.register(StaticPlugin("a", 1))
        registry.get_plugins().clear()
        assert len(registry) == 1

    def test_clear(self) -> None:
        registry = PluginRegistry()
        registry.register(StaticPlugin("a", 1))
        registry.clear()
        assert registry.get_plugins() == []


class TestExecute:
    """A failing plugin should be isolated from the rest of the fan-out."""

    def test_failing_plugin_is_isolated(self, base, caplog) -> None:
        registry = PluginRegistry()
        registry.register(StaticPlugin("first", 30))
        registry.register(FailingPlugin("broken", 20))
        registry.register(StaticPlugin("last", 10))

        with caplog.at_level(logging.WARNING, logger="nlshell.context.registry"):
            results = registry.execute(CancelToken(), base)

        assert set(results) == {"first", "last"}
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "broken" in warnings[0].getMessage()
        assert warnings[0].error["context"] == {"plugin": "broken"}

    def test_none_output_is_omitted(self, base) -> None:
        registry = PluginRegistry()
        registry.register(NonePlugin("quiet", 1))
        registry.register(StaticPlugin("loud", 1, {"x": 1}))
        assert registry.execute(CancelToken(), base) == {"loud": {"x": 1}}

    def test_cancelled_before_start_runs_nothing(self, base) -> None:
        registry = PluginRegistry()
        plugin = StaticPlugin("a", 1)
        registry.register(plugin)
        token = CancelToken()
        token.cancel()
        assert registry.execute(token, base) == {}
        assert plugin.calls == 0

    def test_cancellation_stops_remaining_plugins(self, base) -> None:
        registry = PluginRegistry()
        canceller = CancellingPlugin("canceller", 20)
        after = StaticPlugin("after", 10)
        registry.register(canceller)
        registry.register(after)

        results = registry.execute(CancelToken(), base)

        assert set(results) == {"canceller"}
        assert after.calls == 0


class TestLoadFromDirectory:
    """Plugins should load from python files exposing create_plugin()."""

    PLUGIN_SOURCE = textwrap.dedent(
        """
        class HostPlugin:
            name = "{name}"
            priority = {priority}

            def gather_context(self, cancel, base):
                return {{"host": "{name}"}}


        def create_plugin():
            return HostPlugin()
        """
    )

    def _write(self, directory, filename, source):
        path = directory / filename
        path.write_text(source)
        return path

    def test_loads_every_plugin_file(self, tmp_path, base) -> None:
        self._write(tmp_path, "alpha.py", self.PLUGIN_SOURCE.format(name="alpha", priority=5))
        self._write(tmp_path, "beta.py", self.PLUGIN_SOURCE.format(name="beta", priority=7))
        self._write(tmp_path, "_helpers.py", "raise RuntimeError('not a plugin')\n")
        self._write(tmp_path, "notes.txt", "ignored")

        registry = PluginRegistry()
        assert registry.load_from_directory(tmp_path) == 2
        assert [p.name for p in registry.get_plugins()] == ["beta", "alpha"]
        assert registry.execute(CancelToken(), base)["alpha"] == {"host": "alpha"}

    def test_broken_files_are_skipped(self, tmp_path, caplog) -> None:
        self._write(tmp_path, "good.py", self.PLUGIN_SOURCE.format(name="good", priority=1))
        self._write(tmp_path, "syntax.py", "def broken(:\n")
        self._write(tmp_path, "nofactory.py", "X = 1\n")
        self._write(tmp_path, "dupe.py", self.PLUGIN_SOURCE.format(name="good", priority=2))

        registry = PluginRegistry()
        with caplog.at_level(logging.WARNING, logger="nlshell.context.registry"):
            loaded = registry.load_from_directory(tmp_path)

        assert loaded == 1
        assert "nofactory.py" in caplog.text
        assert "syntax.py" in caplog.text

    def test_missing_directory_loads_nothing(self, tmp_path) -> None:
        assert PluginRegistry().load_from_directory(tmp_path / "absent") == 0

    def test_file_path_rejected(self, tmp_path) -> None:
        path = self._write(tmp_path, "plugin.py", "X = 1\n")
        with pytest.raises(ValidationError, match="not a directory"):
            PluginRegistry().load_from_directory(path)

    def test_empty_path_rejected(self) -> None:
        with pytest.raises(ValidationError, match="cannot be empty"):
            PluginRegistry().load_from_directory("")
