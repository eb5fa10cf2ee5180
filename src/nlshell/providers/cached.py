"""Provider wrapper that consults the provider-response cache before calling out."""

from __future__ import annotations

import logging
import time
from typing import Optional

from nlshell.cache.manager import CacheManager
from nlshell.core.cancellation import CancelToken
from nlshell.core.exceptions import CacheValidationError
from nlshell.models import CommandResponse, ContextSnapshot, ProviderInfo, ValidationResponse
from nlshell.providers.protocol import ILLMProvider

log = logging.getLogger(__name__)


class CachedProvider:
    """Caches command and validation responses of ``provider`` for ``model``.

    Cache misses call the wrapped provider and record its latency in the
    manager's metrics tracker. Failing to store a response is logged and
    never fails the call. A disabled manager bypasses the cache entirely.
    """

    def __init__(self, provider: ILLMProvider, manager: CacheManager, model: str) -> None:
        self._provider = provider
        self._manager = manager
        self._model = model
        self._name = provider.info().name

    @property
    def model(self) -> str:
        return self._model

    def info(self) -> ProviderInfo:
        return self._provider.info()

    def generate_command(
        self,
        prompt: str,
        snapshot: ContextSnapshot,
        cancel: Optional[CancelToken] = None,
    ) -> CommandResponse:
        cache = self._manager.provider_cache
        enabled = self._manager.is_enabled

        if enabled:
            cached = cache.get_command_response(prompt, snapshot, self._name, self._model)
            if cached is not None:
                log.debug("Command cache hit for %s/%s", self._name, self._model)
                return cached

        start = time.monotonic()
        response = self._provider.generate_command(prompt, snapshot, cancel)
        self._manager.metrics.record_response_time(time.monotonic() - start)

        if enabled:
            try:
                cache.set_command_response(prompt, snapshot, self._name, self._model, response)
            except CacheValidationError as exc:
                log.warning("Failed to cache command response: %s", exc)
        return response

    def validate_result(
        self,
        command: str,
        output: str,
        intent: str,
        cancel: Optional[CancelToken] = None,
    ) -> ValidationResponse:
        cache = self._manager.provider_cache
        enabled = self._manager.is_enabled

        if enabled:
            cached = cache.get_validation_response(command, output, intent, self._name, self._model)
            if cached is not None:
                return cached

        start = time.monotonic()
        response = self._provider.validate_result(command, output, intent, cancel)
        self._manager.metrics.record_response_time(time.monotonic() - start)

        if enabled:
            try:
                cache.set_validation_response(
                    command, output, intent, self._name, self._model, response
                )
            except CacheValidationError as exc:
                log.warning("Failed to cache validation response: %s", exc)
        return response
