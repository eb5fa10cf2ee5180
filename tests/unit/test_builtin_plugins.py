"""Tests for the built-in git, environment, devtools and project plugins."""

from __future__ import annotations

import subprocess

import pytest

from nlshell.cache.context_cache import ContextCache
from nlshell.context.protocols import IContextPlugin
from nlshell.context.registry import PluginRegistry
from nlshell.core.cancellation import CancelToken
from nlshell.core.exceptions import OperationCancelledError, PluginRegistrationError
from nlshell.models import ContextSnapshot
from nlshell.plugins import builtin_plugins, register_builtin_plugins
from nlshell.plugins.devtools import DevToolsPlugin, ToolSpec, detect_containers, detect_runtimes
from nlshell.plugins.environment import EnvironmentPlugin, is_relevant, is_sensitive
from nlshell.plugins.git import GitPlugin, find_git_root
from nlshell.plugins.project import (
    ProjectPlugin,
    ProjectType,
    detect_primary_language,
    primary_type,
)


def _touch(root, *names):
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")


class FakeGit:
    """Maps git argument tuples to canned stdout or an exception."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def __call__(self, args, cwd):
        self.calls.append(tuple(args))
        result = self.responses[tuple(args)]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def repo(tmp_path):
    (tmp_path / ".git").mkdir()
    (tmp_path / "sub").mkdir()
    return tmp_path


class TestBuiltinSet:
    """Built-in plugins should satisfy the plugin protocol and register only once."""

    def test_all_satisfy_protocol(self) -> None:
        assert all(isinstance(p, IContextPlugin) for p in builtin_plugins())

    def test_register_twice_is_rejected(self) -> None:
        registry = PluginRegistry()
        register_builtin_plugins(registry)
        assert len(registry) == 4
        with pytest.raises(PluginRegistrationError):
            register_builtin_plugins(registry)


class TestGitPlugin:
    """GitPlugin should report repository state from git and refresh the cached view."""

    def test_find_git_root_walks_up(self, repo) -> None:
        assert find_git_root(str(repo / "sub")) == str(repo)

    def test_worktree_marker_file(self, tmp_path) -> None:
        (tmp_path / ".git").write_text("gitdir: /elsewhere\n")
        assert find_git_root(str(tmp_path)) == str(tmp_path)

    def test_not_a_repository(self, tmp_path) -> None:
        runner = FakeGit({})
        git = GitPlugin(runner=runner).collect(CancelToken(), str(tmp_path / "none"))
        assert git.is_repository is False
        assert runner.calls == []

    def test_clean_repository(self, repo) -> None:
        runner = FakeGit(
            {
                ("rev-parse", "--abbrev-ref", "HEAD"): "main\n",
                ("status", "--porcelain"): "",
            }
        )
        git = GitPlugin(runner=runner).collect(CancelToken(), str(repo))
        assert git.current_branch == "main"
        assert git.working_tree_status == "clean"
        assert git.has_uncommitted_changes is False

    def test_dirty_repository_uses_short_status(self, repo) -> None:
        runner = FakeGit(
            {
                ("rev-parse", "--abbrev-ref", "HEAD"): "feature\n",
                ("status", "--porcelain"): " M app.py\n",
                ("status", "--short"): " M app.py\n?? notes.md\n",
            }
        )
        git = GitPlugin(runner=runner).collect(CancelToken(), str(repo))
        assert git.has_uncommitted_changes is True
        assert git.working_tree_status == "M app.py\n?? notes.md"

    def test_command_failures_leave_fields_empty(self, repo) -> None:
        failure = subprocess.CalledProcessError(128, ["git"])
        runner = FakeGit(
            {
                ("rev-parse", "--abbrev-ref", "HEAD"): failure,
                ("status", "--porcelain"): failure,
            }
        )
        git = GitPlugin(runner=runner).collect(CancelToken(), str(repo))
        assert git.is_repository is True
        assert git.current_branch == ""
        assert git.working_tree_status == ""

    def test_cancellation_observed(self, repo) -> None:
        token = CancelToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            GitPlugin(runner=FakeGit({})).collect(token, str(repo))

    def test_gather_sets_snapshot_and_cache(self, repo) -> None:
        runner = FakeGit(
            {
                ("rev-parse", "--abbrev-ref", "HEAD"): "main\n",
                ("status", "--porcelain"): "",
            }
        )
        cache = ContextCache()
        try:
            base = ContextSnapshot(working_directory=str(repo))
            data = GitPlugin(cache, runner=runner).gather_context(CancelToken(), base)
            assert data["current_branch"] == "main"
            assert base.git is not None and base.git.is_repository
            assert cache.get_git_context(str(repo)) == base.git
        finally:
            cache.close()


class TestEnvironmentPlugin:
    """EnvironmentPlugin should report relevant variables and hide sensitive ones."""

    ENV = {
        "PATH": "/usr/bin",
        "HOME": "/home/dev",
        "USER": "dev",
        "SHELL": "/bin/zsh",
        "TERM": "xterm-256color",
        "LANG": "en_US.UTF-8",
        "TMPDIR": "/tmp",
        "XDG_CONFIG_HOME": "/home/dev/.config",
        "JAVA_HOME": "/opt/java",
        "NODE_ENV": "development",
        "AWS_SECRET_ACCESS_KEY": "hunter2",
        "GITHUB_TOKEN": "ghp_x",
        "SSH_AUTH_SOCK": "/tmp/agent",
        "RANDOM_THING": "1",
    }

    def test_sensitive_names(self) -> None:
        for name in ("AWS_SECRET_ACCESS_KEY", "github_token", "DB_PASSWORD", "SSH_AUTH_SOCK"):
            assert is_sensitive(name)
        assert not is_sensitive("EDITOR")

    def test_relevant_names(self) -> None:
        assert is_relevant("PATH")
        assert is_relevant("GOPATH")
        assert is_relevant("PYTHON_VERSION")
        assert not is_relevant("RANDOM_THING")
        assert not is_relevant("AWS_SESSION_TOKEN")

    def test_gather_filters_and_summarises(self) -> None:
        data = EnvironmentPlugin(self.ENV).gather_context(
            CancelToken(), ContextSnapshot(working_directory="/")
        )
        variables = data["variables"]
        assert set(variables) == {
            "PATH",
            "HOME",
            "USER",
            "SHELL",
            "TERM",
            "LANG",
            "TMPDIR",
            "XDG_CONFIG_HOME",
            "JAVA_HOME",
            "NODE_ENV",
        }
        assert list(variables) == sorted(variables)
        assert data["shell"] == {"current": "/bin/zsh", "name": "zsh", "terminal": "xterm-256color"}
        assert data["user"] == {"name": "dev", "home": "/home/dev"}
        assert data["system"]["temp_dirs"] == ["/tmp"]
        assert data["system"]["xdg_dirs"] == {"config": "/home/dev/.config"}


class TestDevToolsPlugin:
    """DevToolsPlugin should list installed tools with their versions."""

    TOOLS = (
        ToolSpec("git", "git", "--version", r"git version (\S+)"),
        ToolSpec("jq", "jq", "--version", r"jq-(\S+)"),
    )

    def _which(self, command):
        return "/usr/bin/git" if command == "git" else None

    def test_detects_available_tools(self, tmp_path) -> None:
        plugin = DevToolsPlugin(
            self.TOOLS, which=self._which, runner=lambda argv: "git version 2.43.0\n"
        )
        data = plugin.gather_context(CancelToken(), ContextSnapshot(working_directory=str(tmp_path)))
        assert data["tools"]["git"] == {
            "name": "git",
            "version": "2.43.0",
            "path": "/usr/bin/git",
            "available": True,
        }
        assert data["tools"]["jq"]["available"] is False

    def test_version_probe_failure_keeps_tool_available(self) -> None:
        def broken(argv):
            raise subprocess.TimeoutExpired(argv, 3)

        plugin = DevToolsPlugin(self.TOOLS, which=self._which, runner=broken)
        info = plugin.detect_tool(self.TOOLS[0])
        assert info.available is True
        assert info.version == ""

    def test_runtimes(self, tmp_path) -> None:
        _touch(tmp_path, "pyproject.toml", "requirements.txt", "main.go")
        (tmp_path / ".venv").mkdir()
        runtimes = detect_runtimes(str(tmp_path))
        assert runtimes["python"] == {
            "config_files": ["requirements.txt", "pyproject.toml"],
            "virtual_env": ".venv",
        }
        assert runtimes["go"] == {"config_files": [], "has_go_files": True}
        assert "nodejs" not in runtimes

    def test_containers(self, tmp_path) -> None:
        _touch(tmp_path, "Dockerfile", "compose.yaml", "deployment.yaml")
        assert detect_containers(str(tmp_path)) == {
            "docker": {"has_dockerfile": True, "has_compose": True},
            "kubernetes": {"config_files": ["deployment.yaml"]},
        }

    def test_empty_directory(self, tmp_path) -> None:
        assert detect_runtimes(str(tmp_path)) == {}
        assert detect_containers(str(tmp_path)) == {}


class TestProjectPlugin:
    """ProjectPlugin should detect project types from marker files."""

    def _gather(self, root):
        return ProjectPlugin().gather_context(CancelToken(), ContextSnapshot(working_directory=str(root)))

    def test_python_project(self, tmp_path) -> None:
        _touch(tmp_path, "pyproject.toml", "app.py", "cli.py", "web.js", "tests/test_app.py", "docs/index.md")
        data = self._gather(tmp_path)

        assert data["primary_language"] == "Python"
        assert data["primary_type"]["type"] == "python"
        assert data["primary_type"]["confidence"] == 0.5
        assert data["structure"] == {
            "top_level_dirs": ["docs", "tests"],
            "file_extensions": {".js": 1, ".py": 2, ".toml": 1},
            "has_tests": True,
            "has_docs": True,
        }

    def test_framework_marker_without_weight(self, tmp_path) -> None:
        _touch(tmp_path, "pyproject.toml", "manage.py")
        python = self._gather(tmp_path)["primary_type"]
        assert python["framework"] == "Django"
        assert "manage.py" in python["indicators"]

    def test_confidence_capped_at_one(self, tmp_path) -> None:
        _touch(tmp_path, "pyproject.toml", "setup.py", "requirements.txt")
        assert self._gather(tmp_path)["primary_type"]["confidence"] == 1.0

    def test_rule_threshold(self, tmp_path) -> None:
        _touch(tmp_path, "Cargo.lock", "src/lib.rs")
        assert all(t["type"] != "rust" for t in self._gather(tmp_path)["types"])

    def test_earliest_rule_wins_ties(self) -> None:
        web = ProjectType(type="web", confidence=0.5)
        node = ProjectType(type="node", confidence=0.5)
        assert primary_type([web, node]) is web
        assert primary_type([]) is None

    def test_unknown_language(self, tmp_path) -> None:
        assert detect_primary_language(str(tmp_path)) == "Unknown"
        assert self._gather(tmp_path)["primary_type"] is None
