"""LLM provider protocol: the contract remote model clients implement."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from nlshell.core.cancellation import CancelToken
from nlshell.models import CommandResponse, ContextSnapshot, ProviderInfo, ValidationResponse


@runtime_checkable
class ILLMProvider(Protocol):
    """Protocol for language-model backends.

    Clients carry their own request deadlines; ``cancel`` lets callers abort
    a request that is still waiting.
    """

    def generate_command(
        self,
        prompt: str,
        snapshot: ContextSnapshot,
        cancel: Optional[CancelToken] = None,
    ) -> CommandResponse:
        """Turn a natural-language request into a shell command.

        Args:
            prompt: The user's request.
            snapshot: Context gathered for this request.
            cancel: Optional cancellation token.

        Returns:
            CommandResponse with the command, an explanation and a confidence in [0, 1].
        """
        ...

    def validate_result(
        self,
        command: str,
        output: str,
        intent: str,
        cancel: Optional[CancelToken] = None,
    ) -> ValidationResponse:
        """Judge whether ``output`` of ``command`` satisfies ``intent``."""
        ...

    def info(self) -> ProviderInfo:
        """Static description of this provider."""
        ...
