"""Context plugin protocol: the contract every context contributor implements."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from nlshell.core.cancellation import CancelToken
from nlshell.models import ContextSnapshot


@runtime_checkable
class IContextPlugin(Protocol):
    """Protocol for context contributors run by the plugin registry.

    Plugins run sequentially in the caller's thread, highest priority first.
    A plugin may set fields on ``base`` (the git plugin sets ``base.git``)
    but must not keep a reference to it after returning.

    A plugin may also expose a ``cache_ttl_seconds`` attribute to override
    how long the gatherer caches its output.
    """

    @property
    def name(self) -> str:
        """Unique name; also the key of the plugin's output in ``plugin_data``."""
        ...

    @property
    def priority(self) -> int:
        """Higher priorities run earlier."""
        ...

    def gather_context(self, cancel: CancelToken, base: ContextSnapshot) -> dict[str, Any] | None:
        """Return this plugin's contribution, or None when it has nothing to add.

        Args:
            cancel: The caller's cancellation token; check it between steps.
            base: The snapshot gathered so far.

        Raises:
            Exception: Any failure. The registry catches and logs it.
        """
        ...
