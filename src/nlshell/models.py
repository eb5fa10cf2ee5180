"""Pydantic data models shared by the context gatherer, caches and providers."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

# ── Context snapshot models ──────────────────────────────────────────


class FileInfo(BaseModel):
    """A single filesystem entry recorded by the directory walk."""

    name: str
    path: str
    is_dir: bool = False
    size: int = 0
    mod_time: datetime


class GitContext(BaseModel):
    """Version-control view of the working directory."""

    is_repository: bool = False
    current_branch: str = ""
    working_tree_status: str = ""
    has_uncommitted_changes: bool = False


class ContextSnapshot(BaseModel):
    """The observation handed to the LLM for one request.

    Not thread-safe: the git contributor writes ``git`` while plugins run,
    so a snapshot must not be shared with a concurrent gather call.
    """

    working_directory: str
    files: list[FileInfo] = Field(default_factory=list)
    git: Optional[GitContext] = None
    environment: dict[str, str] = Field(default_factory=dict)
    plugin_data: dict[str, Any] = Field(default_factory=dict)


# ── Provider response models ─────────────────────────────────────────


class CommandResponse(BaseModel):
    """A generated shell command returned by a provider."""

    command: str
    explanation: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    alternatives: list[str] = Field(default_factory=list)


class ValidationResponse(BaseModel):
    """A provider's judgement of a command's execution outcome."""

    is_correct: bool
    explanation: str = ""
    suggestions: list[str] = Field(default_factory=list)
    correction: str = ""


class ProviderInfo(BaseModel):
    """Static description of an LLM provider."""

    name: str
    requires_auth: bool = True
    supported_models: list[str] = Field(default_factory=list)
