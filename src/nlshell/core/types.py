"""Shared type aliases for the caching and context layers."""

from __future__ import annotations

from typing import Any

# Filtered environment variables (name -> value)
EnvMap = dict[str, str]

# Plugin name -> plugin output
PluginData = dict[str, Any]
