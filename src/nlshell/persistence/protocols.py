"""Statistics backend protocol: the contract every stats store implements."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IStatsBackend(Protocol):
    """Protocol for the single statistics document written at shutdown."""

    def save(self, data: str) -> None:
        """Persist the serialized statistics document, replacing any previous one."""
        ...

    def load(self) -> str:
        """Load the serialized document. Raises KeyError if nothing was saved."""
        ...

    def exists(self) -> bool:
        """Check whether a document has been saved."""
        ...
