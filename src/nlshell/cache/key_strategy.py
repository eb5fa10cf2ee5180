"""Cache key computation for deterministic, collision-resistant keys.

Every key is the SHA-256 hex digest of its components, each followed by a
``|`` separator, so ``("ab", "c")`` and ``("a", "bc")`` never collide.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nlshell.models import ContextSnapshot

SEPARATOR = "|"

# The environment snapshot is process-wide, so it lives under a fixed key.
ENVIRONMENT_KEY = "environment_context"


def cache_key(*components: object) -> str:
    """Compute a deterministic SHA-256 key over ``components``."""
    digest = hashlib.sha256()
    for component in components:
        digest.update(str(component).encode("utf-8"))
        digest.update(SEPARATOR.encode("utf-8"))
    return digest.hexdigest()


def context_fingerprint(snapshot: ContextSnapshot) -> str:
    """Fingerprint a context snapshot.

    Covers the working directory, the file count, the git view (when
    present) and the environment. Environment variables are digested in
    sorted name order so the key does not depend on mapping order. Parts are
    length-prefixed because values such as git status or environment
    variables may themselves contain the separator.
    """
    parts: list[str] = [snapshot.working_directory, str(len(snapshot.files))]

    if snapshot.git is not None:
        parts.extend(
            [
                snapshot.git.current_branch,
                snapshot.git.working_tree_status,
                "true" if snapshot.git.has_uncommitted_changes else "false",
            ]
        )

    for name in sorted(snapshot.environment):
        parts.append(f"{name}={snapshot.environment[name]}")

    return cache_key(*(f"{len(part)}:{part}" for part in parts))


def prompt_fingerprint(prompt: str, snapshot: ContextSnapshot, provider: str, model: str) -> str:
    """Key for a command response: prompt, provider, model and context."""
    return cache_key(prompt, provider, model, context_fingerprint(snapshot))


def filesystem_key(working_dir: str, max_files: int, max_depth: int) -> str:
    return cache_key("filesystem", working_dir, max_files, max_depth)


def git_key(working_dir: str) -> str:
    return cache_key("git", working_dir)


def plugin_key(plugin_name: str, working_dir: str) -> str:
    return cache_key("plugin", plugin_name, working_dir)


def validation_key(command: str, output: str, intent: str, provider: str, model: str) -> str:
    """Key for a validation response."""
    return cache_key("validation", command, output, intent, provider, model)
