"""Cooperative cancellation shared by the gatherer, the registry and plugins."""

from __future__ import annotations

import threading

from nlshell.core.exceptions import OperationCancelledError


class CancelToken:
    """Thread-safe, one-way cancellation flag.

    Once cancelled a token stays cancelled. Long-running work polls
    ``cancelled`` or calls ``raise_if_cancelled()`` at its checkpoints.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the flag."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self, operation: str = "") -> None:
        if self._event.is_set():
            raise OperationCancelledError(
                self._reason or "operation cancelled",
                operation=operation,
            )


def ensure_token(cancel: CancelToken | None) -> CancelToken:
    """Return ``cancel`` or a fresh token that is never cancelled."""
    return cancel if cancel is not None else CancelToken()
