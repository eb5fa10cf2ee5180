"""Environment context plugin: relevant variables with secrets filtered out."""

from __future__ import annotations

import os
import re
from typing import Any, Mapping

from nlshell.core.cancellation import CancelToken
from nlshell.models import ContextSnapshot

SENSITIVE_PATTERN = re.compile(
    "PASSWORD|SECRET|KEY|TOKEN|CREDENTIAL|AUTH|PRIVATE|CERT|SSH|GPG|OAUTH|JWT|BEARER|COOKIE|SESSION"
)

IMPORTANT_VARS = frozenset(
    {
        "PATH",
        "HOME",
        "USER",
        "USERNAME",
        "SHELL",
        "TERM",
        "LANG",
        "LC_ALL",
        "PWD",
        "OLDPWD",
        "EDITOR",
        "VISUAL",
        "PAGER",
        "BROWSER",
        "TMPDIR",
        "TMP",
        "TEMP",
        "XDG_CONFIG_HOME",
        "XDG_DATA_HOME",
        "XDG_CACHE_HOME",
    }
)

# Development, container, cloud and CI variables, matched against the whole name
RELEVANT_PATTERN = re.compile(
    r".*_HOME|.*_PATH|.*_VERSION|.*_ENV"
    r"|(?:GO|PYTHON|NODE|JAVA|DOCKER|KUBE|AWS|GCP|AZURE|CI|BUILD|DEPLOY).*"
)


def is_sensitive(name: str) -> bool:
    return SENSITIVE_PATTERN.search(name.upper()) is not None


def is_relevant(name: str) -> bool:
    upper = name.upper()
    if upper in IMPORTANT_VARS:
        return True
    return RELEVANT_PATTERN.fullmatch(upper) is not None and not is_sensitive(upper)


class EnvironmentPlugin:
    """Reports relevant, non-sensitive environment variables plus shell/user/system info."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    @property
    def name(self) -> str:
        return "environment"

    @property
    def priority(self) -> int:
        return 100

    def gather_context(self, cancel: CancelToken, base: ContextSnapshot) -> dict[str, Any]:
        cancel.raise_if_cancelled("environment")
        env = os.environ if self._environ is None else self._environ

        variables = {
            name: value
            for name, value in sorted(env.items())
            if not is_sensitive(name) and is_relevant(name)
        }
        return {
            "variables": variables,
            "shell": _shell_info(env),
            "user": _user_info(env),
            "system": _system_info(env),
        }


def _shell_info(env: Mapping[str, str]) -> dict[str, str]:
    info: dict[str, str] = {}
    shell = env.get("SHELL", "")
    if shell:
        info["current"] = shell
        info["name"] = shell.rsplit("/", 1)[-1]
    if env.get("TERM"):
        info["terminal"] = env["TERM"]
    return info


def _user_info(env: Mapping[str, str]) -> dict[str, str]:
    info: dict[str, str] = {}
    user = env.get("USER") or env.get("USERNAME")
    if user:
        info["name"] = user
    if env.get("HOME"):
        info["home"] = env["HOME"]
    return info


def _system_info(env: Mapping[str, str]) -> dict[str, Any]:
    info: dict[str, Any] = {}
    if env.get("LANG"):
        info["language"] = env["LANG"]
    if env.get("LC_ALL"):
        info["locale"] = env["LC_ALL"]

    temp_dirs = [env[name] for name in ("TMPDIR", "TMP", "TEMP") if env.get(name)]
    if temp_dirs:
        info["temp_dirs"] = temp_dirs

    xdg = {
        label: env[name]
        for label, name in (
            ("config", "XDG_CONFIG_HOME"),
            ("data", "XDG_DATA_HOME"),
            ("cache", "XDG_CACHE_HOME"),
        )
        if env.get(name)
    }
    if xdg:
        info["xdg_dirs"] = xdg
    return info
