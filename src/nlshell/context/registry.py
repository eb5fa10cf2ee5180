"""Priority-ordered registry of context plugins with fault-isolated execution.

Usage::

    from nlshell.context.registry import PluginRegistry

    registry = PluginRegistry()
    registry.register(GitPlugin())
    registry.load_from_directory("~/.config/nlshell/plugins")
    data = registry.execute(cancel, snapshot)
"""

from __future__ import annotations

import importlib.util
import itertools
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from nlshell.context.protocols import IContextPlugin
from nlshell.core.cancellation import CancelToken
from nlshell.core.exceptions import (
    OperationCancelledError,
    PluginError,
    PluginNotFoundError,
    PluginRegistrationError,
    ValidationError,
)
from nlshell.core.logging_config import log_error
from nlshell.core.types import PluginData
from nlshell.models import ContextSnapshot

log = logging.getLogger(__name__)

# Module-level factory every plugin file must expose
PLUGIN_FACTORY = "create_plugin"


@dataclass(frozen=True)
class PluginInfo:
    """Name and priority of a registered plugin."""

    name: str
    priority: int


class PluginRegistry:
    """Registry of context plugins with unique names.

    Plugins are kept sorted by descending priority; equal priorities keep
    their registration order. ``execute`` works from a copy taken under the
    lock, so registering or removing plugins never disturbs a running pass.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._plugins: list[IContextPlugin] = []
        self._seq: dict[str, int] = {}
        self._counter = itertools.count()

    def register(self, plugin: IContextPlugin | None) -> None:
        """Register a plugin.

        Raises:
            PluginRegistrationError: ``plugin`` is None, does not implement the
                plugin protocol, or its name is already registered.
        """
        if plugin is None:
            raise PluginRegistrationError("plugin cannot be None", component="plugin_registry")
        if not isinstance(plugin, IContextPlugin):
            raise PluginRegistrationError(
                f"{type(plugin).__name__} does not implement the context plugin protocol",
                component="plugin_registry",
            )

        name = plugin.name
        with self._lock:
            if name in self._seq:
                raise PluginRegistrationError(
                    f"plugin with name {name!r} already registered",
                    component="plugin_registry",
                    context={"plugin": name},
                )
            self._seq[name] = next(self._counter)
            self._plugins.append(plugin)
            self._sort()
        log.debug("Registered plugin %s (priority %d)", name, plugin.priority)

    def remove(self, name: str) -> None:
        """Remove a plugin by name.

        Raises:
            PluginNotFoundError: No plugin with that name is registered.
        """
        with self._lock:
            for i, plugin in enumerate(self._plugins):
                if plugin.name == name:
                    del self._plugins[i]
                    del self._seq[name]
                    return
        raise PluginNotFoundError(
            f"plugin with name {name!r} not found",
            component="plugin_registry",
            context={"plugin": name},
        )

    def get(self, name: str) -> IContextPlugin:
        """Get a plugin by name.

        Raises:
            PluginNotFoundError: No plugin with that name is registered.
        """
        with self._lock:
            for plugin in self._plugins:
                if plugin.name == name:
                    return plugin
        raise PluginNotFoundError(
            f"plugin with name {name!r} not found",
            component="plugin_registry",
            context={"plugin": name},
        )

    def get_plugins(self) -> list[IContextPlugin]:
        """Return a copy of the registered plugins in execution order."""
        with self._lock:
            return list(self._plugins)

    def plugin_info(self) -> list[PluginInfo]:
        with self._lock:
            return [PluginInfo(name=p.name, priority=p.priority) for p in self._plugins]

    def clear(self) -> None:
        with self._lock:
            self._plugins.clear()
            self._seq.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._plugins)

    # ── Execution ───────────────────────────────────────────────────

    def execute(self, cancel: CancelToken, base: ContextSnapshot) -> PluginData:
        """Run every plugin in priority order and collect their outputs.

        The token is checked before each plugin; once it fires, the outputs
        gathered so far are returned. Failing plugins are logged and skipped,
        and plugins returning None contribute nothing.
        """
        results: PluginData = {}
        for plugin in self.get_plugins():
            if cancel.cancelled:
                log.debug("Plugin execution cancelled after %d plugin(s)", len(results))
                break
            data, ok = self.run_plugin(plugin, cancel, base)
            if ok and data is not None:
                results[plugin.name] = data
        return results

    def run_plugin(
        self, plugin: IContextPlugin, cancel: CancelToken, base: ContextSnapshot
    ) -> tuple[Any, bool]:
        """Run one plugin inside the failure barrier; return ``(data, ok)``."""
        name = plugin.name
        try:
            return plugin.gather_context(cancel, base), True
        except OperationCancelledError:
            log.debug("Plugin %s observed cancellation", name)
            return None, False
        except Exception as exc:
            err = PluginError(
                f"plugin {name} failed",
                cause=exc,
                component="plugin_registry",
                operation="gather_context",
                context={"plugin": name},
            )
            log_error(log, err)
            return None, False

    # ── Dynamic loading ─────────────────────────────────────────────

    def load_from_directory(self, plugin_dir: str | Path) -> int:
        """Import every ``*.py`` file in ``plugin_dir`` and register its plugin.

        Each file must define a module-level ``create_plugin()`` factory.
        Files that fail to import or register are logged and skipped.

        Returns:
            The number of plugins registered.

        Raises:
            ValidationError: ``plugin_dir`` is empty or is not a directory.
        """
        if not str(plugin_dir):
            raise ValidationError("plugin directory cannot be empty", component="plugin_registry")

        directory = Path(plugin_dir).expanduser()
        if not directory.exists():
            log.debug("Plugin directory %s does not exist, nothing to load", directory)
            return 0
        if not directory.is_dir():
            raise ValidationError(
                f"plugin path {directory} is not a directory",
                component="plugin_registry",
                operation="load_from_directory",
            )

        loaded = 0
        for path in sorted(directory.glob("*.py")):
            if path.name.startswith("_"):
                continue
            try:
                self.register(_load_plugin_file(path))
            except Exception as exc:
                log.warning("Failed to load plugin %s: %s", path, exc)
                continue
            loaded += 1

        log.info("Loaded %d plugin(s) from %s", loaded, directory)
        return loaded

    # ── Internal ────────────────────────────────────────────────────

    def _sort(self) -> None:
        # caller holds the lock
        self._plugins.sort(key=lambda p: (-p.priority, self._seq[p.name]))


def _load_plugin_file(path: Path) -> IContextPlugin:
    module_name = f"nlshell_user_plugins.{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot import {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    factory = getattr(module, PLUGIN_FACTORY, None)
    if not callable(factory):
        raise PluginRegistrationError(f"{path.name} does not define {PLUGIN_FACTORY}()")
    plugin = factory()
    if plugin is None:
        raise PluginRegistrationError(f"{path.name} {PLUGIN_FACTORY}() returned None")
    return plugin
