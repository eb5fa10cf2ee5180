"""Git context plugin: branch and working-tree status of the current repository."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import TYPE_CHECKING, Any, Callable, Optional

from nlshell.core.cancellation import CancelToken
from nlshell.core.exceptions import CacheValidationError
from nlshell.models import ContextSnapshot, GitContext

if TYPE_CHECKING:
    from nlshell.cache.context_cache import ContextCache

log = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 5.0

# (args, cwd) -> stdout; raises on non-zero exit
CommandRunner = Callable[[list[str], str], str]


def run_git(args: list[str], cwd: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        timeout=GIT_TIMEOUT_SECONDS,
        check=True,
    )
    return result.stdout


def find_git_root(directory: str) -> Optional[str]:
    """Walk up from ``directory`` to the first one holding a ``.git`` entry.

    ``.git`` may be a directory or, for worktrees and submodules, a file.
    """
    current = os.path.abspath(directory)
    while True:
        marker = os.path.join(current, ".git")
        if os.path.isdir(marker) or os.path.isfile(marker):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


class GitPlugin:
    """Reports the branch and status of the repository containing the working directory.

    Sets ``base.git`` on the snapshot it is given and, when constructed with
    a context cache, stores the git view there so the next gather can attach
    it without running git again.
    """

    cache_ttl_seconds = 120

    def __init__(
        self,
        context_cache: ContextCache | None = None,
        *,
        runner: CommandRunner | None = None,
    ) -> None:
        self._cache = context_cache
        self._run = runner or run_git

    @property
    def name(self) -> str:
        return "git"

    @property
    def priority(self) -> int:
        return 100

    def gather_context(self, cancel: CancelToken, base: ContextSnapshot) -> dict[str, Any]:
        git = self.collect(cancel, base.working_directory)
        base.git = git
        if self._cache is not None:
            try:
                self._cache.set_git_context(base.working_directory, git)
            except CacheValidationError as exc:
                log.debug("Failed to cache git context: %s", exc)
        return git.model_dump()

    def collect(self, cancel: CancelToken, working_dir: str) -> GitContext:
        """Gather the git view for ``working_dir``; command failures leave fields empty."""
        git = GitContext()
        if find_git_root(working_dir) is None:
            return git
        git.is_repository = True

        cancel.raise_if_cancelled("git.branch")
        try:
            git.current_branch = self._run(["rev-parse", "--abbrev-ref", "HEAD"], working_dir).strip()
        except (OSError, subprocess.SubprocessError) as exc:
            log.debug("git rev-parse failed in %s: %s", working_dir, exc)

        cancel.raise_if_cancelled("git.status")
        try:
            porcelain = self._run(["status", "--porcelain"], working_dir).strip()
        except (OSError, subprocess.SubprocessError) as exc:
            log.debug("git status failed in %s: %s", working_dir, exc)
            return git

        if not porcelain:
            git.working_tree_status = "clean"
            return git

        git.has_uncommitted_changes = True
        git.working_tree_status = porcelain
        try:
            git.working_tree_status = self._run(["status", "--short"], working_dir).strip()
        except (OSError, subprocess.SubprocessError) as exc:
            log.debug("git status --short failed in %s: %s", working_dir, exc)
        return git
