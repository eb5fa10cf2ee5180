"""LLM provider interface and the caching wrapper around it."""

from __future__ import annotations

from nlshell.providers.cached import CachedProvider
from nlshell.providers.protocol import ILLMProvider

__all__ = ["CachedProvider", "ILLMProvider"]
