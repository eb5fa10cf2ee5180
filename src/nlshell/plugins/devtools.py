"""Development tools plugin: installed tools, runtimes and container setup."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from pydantic import BaseModel

from nlshell.core.cancellation import CancelToken
from nlshell.models import ContextSnapshot

log = logging.getLogger(__name__)

VERSION_TIMEOUT_SECONDS = 3.0


@dataclass(frozen=True)
class ToolSpec:
    """How to find a tool and read its version."""

    name: str
    command: str
    version_flag: str
    version_pattern: str


class ToolInfo(BaseModel):
    name: str
    version: str = ""
    path: str = ""
    available: bool = False


DEFAULT_TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec("docker", "docker", "--version", r"Docker version ([^\s,]+)"),
    ToolSpec("node", "node", "--version", r"v?(\S+)"),
    ToolSpec("npm", "npm", "--version", r"(\S+)"),
    ToolSpec("yarn", "yarn", "--version", r"(\S+)"),
    ToolSpec("python", "python", "--version", r"Python (\S+)"),
    ToolSpec("python3", "python3", "--version", r"Python (\S+)"),
    ToolSpec("pip", "pip", "--version", r"pip (\S+)"),
    ToolSpec("go", "go", "version", r"go version go(\S+)"),
    ToolSpec("java", "java", "-version", r'version "([^"]+)"'),
    ToolSpec("mvn", "mvn", "--version", r"Apache Maven (\S+)"),
    ToolSpec("gradle", "gradle", "--version", r"Gradle (\S+)"),
    ToolSpec("ruby", "ruby", "--version", r"ruby (\S+)"),
    ToolSpec("php", "php", "--version", r"PHP (\S+)"),
    ToolSpec("rust", "rustc", "--version", r"rustc (\S+)"),
    ToolSpec("cargo", "cargo", "--version", r"cargo (\S+)"),
    ToolSpec("git", "git", "--version", r"git version (\S+)"),
    ToolSpec("kubectl", "kubectl", "version", r"Client Version: v?(\S+)"),
    ToolSpec("helm", "helm", "version", r'Version:"v?([^"]+)"'),
    ToolSpec("terraform", "terraform", "--version", r"Terraform v(\S+)"),
    ToolSpec("make", "make", "--version", r"GNU Make (\S+)"),
    ToolSpec("gcc", "gcc", "--version", r"gcc \([^)]+\) (\S+)"),
    ToolSpec("curl", "curl", "--version", r"curl (\S+)"),
    ToolSpec("jq", "jq", "--version", r"jq-(\S+)"),
    ToolSpec("aws", "aws", "--version", r"aws-cli/(\S+)"),
)

# Project files that hint at a language runtime
RUNTIME_FILES: dict[str, tuple[str, ...]] = {
    "nodejs": ("package.json", "yarn.lock", "package-lock.json", ".nvmrc", ".node-version"),
    "python": (
        "requirements.txt",
        "setup.py",
        "pyproject.toml",
        "Pipfile",
        "environment.yml",
        ".python-version",
        "runtime.txt",
    ),
    "java": ("pom.xml", "build.gradle", "build.gradle.kts", "build.xml", ".java-version"),
    "go": ("go.mod", "go.sum", "Gopkg.toml", "Gopkg.lock"),
}

VENV_DIRS = ("venv", ".venv", "env", "virtualenv")

KUBERNETES_FILES = (
    "deployment.yaml",
    "deployment.yml",
    "service.yaml",
    "service.yml",
    "kustomization.yaml",
    "kustomization.yml",
)

# (argv) -> combined stdout/stderr
VersionRunner = Callable[[list[str]], str]


def run_version(argv: list[str]) -> str:
    result = subprocess.run(
        argv,
        capture_output=True,
        text=True,
        timeout=VERSION_TIMEOUT_SECONDS,
        check=False,
    )
    return result.stdout + result.stderr


class DevToolsPlugin:
    """Detects development tools on ``PATH`` and project runtimes in the working directory."""

    def __init__(
        self,
        tools: Sequence[ToolSpec] = DEFAULT_TOOLS,
        *,
        which: Callable[[str], Optional[str]] = shutil.which,
        runner: VersionRunner | None = None,
    ) -> None:
        self._tools = tuple(tools)
        self._which = which
        self._run = runner or run_version

    @property
    def name(self) -> str:
        return "devtools"

    @property
    def priority(self) -> int:
        return 90

    def gather_context(self, cancel: CancelToken, base: ContextSnapshot) -> dict[str, Any]:
        tools: dict[str, dict[str, Any]] = {}
        for spec in self._tools:
            cancel.raise_if_cancelled("devtools")
            tools[spec.name] = self.detect_tool(spec).model_dump()

        root = base.working_directory
        return {
            "tools": tools,
            "runtimes": detect_runtimes(root),
            "containers": detect_containers(root),
        }

    def detect_tool(self, spec: ToolSpec) -> ToolInfo:
        info = ToolInfo(name=spec.name)
        path = self._which(spec.command)
        if not path:
            return info
        info.path = path
        info.available = True

        try:
            output = self._run([spec.command, spec.version_flag])
        except (OSError, subprocess.SubprocessError) as exc:
            log.debug("Version probe for %s failed: %s", spec.name, exc)
            return info

        match = re.search(spec.version_pattern, output)
        if match:
            info.version = match.group(1).strip()
        return info


def _existing(root: str, names: Sequence[str]) -> list[str]:
    return [name for name in names if os.path.exists(os.path.join(root, name))]


def detect_runtimes(root: str) -> dict[str, Any]:
    runtimes: dict[str, Any] = {}
    for runtime, names in RUNTIME_FILES.items():
        found = _existing(root, names)
        if found:
            runtimes[runtime] = {"config_files": found}

    if "python" in runtimes:
        for venv in VENV_DIRS:
            if os.path.isdir(os.path.join(root, venv)):
                runtimes["python"]["virtual_env"] = venv
                break

    try:
        has_go_sources = any(name.endswith(".go") for name in os.listdir(root))
    except OSError:
        has_go_sources = False
    if has_go_sources:
        runtimes.setdefault("go", {"config_files": []})["has_go_files"] = True
    return runtimes


def detect_containers(root: str) -> dict[str, Any]:
    containers: dict[str, Any] = {}

    docker: dict[str, bool] = {}
    if _existing(root, ("Dockerfile",)):
        docker["has_dockerfile"] = True
    if _existing(root, ("docker-compose.yml", "docker-compose.yaml", "compose.yaml")):
        docker["has_compose"] = True
    if _existing(root, (".dockerignore",)):
        docker["has_dockerignore"] = True
    if docker:
        containers["docker"] = docker

    k8s_files = _existing(root, KUBERNETES_FILES)
    if k8s_files:
        containers["kubernetes"] = {"config_files": k8s_files}
    return containers
