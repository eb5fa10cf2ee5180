"""Deterministic LLM provider fake that counts calls."""

from __future__ import annotations

from typing import Optional

from nlshell.core.cancellation import CancelToken
from nlshell.models import CommandResponse, ContextSnapshot, ProviderInfo, ValidationResponse


class FakeProvider:
    """Echoes the prompt back as a command; no network involved."""

    def __init__(
        self,
        name: str = "fake",
        *,
        confidence: float = 0.9,
        is_correct: bool = True,
    ) -> None:
        self._name = name
        self._confidence = confidence
        self._is_correct = is_correct
        self.command_calls = 0
        self.validation_calls = 0

    def generate_command(
        self,
        prompt: str,
        snapshot: ContextSnapshot,
        cancel: Optional[CancelToken] = None,
    ) -> CommandResponse:
        self.command_calls += 1
        return CommandResponse(
            command=f"echo {prompt!r}",
            explanation="prints the request",
            confidence=self._confidence,
        )

    def validate_result(
        self,
        command: str,
        output: str,
        intent: str,
        cancel: Optional[CancelToken] = None,
    ) -> ValidationResponse:
        self.validation_calls += 1
        return ValidationResponse(is_correct=self._is_correct, explanation="checked")

    def info(self) -> ProviderInfo:
        return ProviderInfo(name=self._name, supported_models=["small", "large"])
