"""Built-in context plugins: git, environment, devtools and project."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nlshell.plugins.devtools import DevToolsPlugin
from nlshell.plugins.environment import EnvironmentPlugin
from nlshell.plugins.git import GitPlugin
from nlshell.plugins.project import ProjectPlugin

if TYPE_CHECKING:
    from nlshell.cache.context_cache import ContextCache
    from nlshell.context.protocols import IContextPlugin
    from nlshell.context.registry import PluginRegistry

__all__ = [
    "builtin_plugins",
    "register_builtin_plugins",
    "DevToolsPlugin",
    "EnvironmentPlugin",
    "GitPlugin",
    "ProjectPlugin",
]


def builtin_plugins(context_cache: ContextCache | None = None) -> list[IContextPlugin]:
    """Fresh instances of every built-in plugin.

    ``context_cache`` lets the git plugin publish its view for the gatherer.
    """
    return [
        GitPlugin(context_cache),
        EnvironmentPlugin(),
        DevToolsPlugin(),
        ProjectPlugin(),
    ]


def register_builtin_plugins(
    registry: PluginRegistry, context_cache: ContextCache | None = None
) -> None:
    """Register every built-in plugin with ``registry``.

    Raises:
        PluginRegistrationError: A plugin with a built-in name is already registered.
    """
    for plugin in builtin_plugins(context_cache):
        registry.register(plugin)
