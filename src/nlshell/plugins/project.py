"""Project plugin: classifies the working directory by weighted indicator files."""

from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, Field

from nlshell.core.cancellation import CancelToken
from nlshell.models import ContextSnapshot


class ProjectType(BaseModel):
    """One detected project type with its supporting evidence."""

    type: str
    language: str = "Unknown"
    framework: str = ""
    confidence: float = 0.0
    indicators: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class ProjectRule:
    """Indicator files/directories and their weights for one project type."""

    type: str
    files: dict[str, float]
    dirs: dict[str, float] = field(default_factory=dict)
    frameworks: dict[str, str] = field(default_factory=dict)
    language: str = ""
    threshold: float = 0.3


PROJECT_RULES: tuple[ProjectRule, ...] = (
    ProjectRule(
        type="web",
        files={
            "index.html": 0.2,
            "webpack.config.js": 0.3,
            "vite.config.js": 0.3,
            "vite.config.ts": 0.3,
            "next.config.js": 0.4,
            "nuxt.config.js": 0.4,
            "angular.json": 0.4,
            "vue.config.js": 0.3,
            "svelte.config.js": 0.3,
        },
        dirs={"public": 0.1, "static": 0.1, "assets": 0.1, "src/components": 0.1, "src/pages": 0.1},
        frameworks={
            "next.config.js": "Next.js",
            "nuxt.config.js": "Nuxt.js",
            "angular.json": "Angular",
            "vue.config.js": "Vue.js",
            "svelte.config.js": "Svelte",
        },
    ),
    ProjectRule(
        type="node",
        files={"package.json": 0.5, "package-lock.json": 0.2, "yarn.lock": 0.2, "pnpm-lock.yaml": 0.2},
        dirs={"node_modules": 0.1},
        language="JavaScript",
    ),
    ProjectRule(
        type="python",
        files={
            "pyproject.toml": 0.5,
            "setup.py": 0.4,
            "setup.cfg": 0.2,
            "requirements.txt": 0.3,
            "Pipfile": 0.3,
            "tox.ini": 0.1,
        },
        frameworks={"manage.py": "Django"},
        language="Python",
    ),
    ProjectRule(
        type="go",
        files={"go.mod": 0.6, "go.sum": 0.2, "main.go": 0.2},
        dirs={"cmd": 0.1, "internal": 0.1, "pkg": 0.1},
        language="Go",
    ),
    ProjectRule(
        type="rust",
        files={"Cargo.toml": 0.6, "Cargo.lock": 0.2},
        dirs={"src": 0.1},
        language="Rust",
        threshold=0.5,
    ),
    ProjectRule(
        type="java",
        files={"pom.xml": 0.5, "build.gradle": 0.5, "build.gradle.kts": 0.5, "build.xml": 0.3},
        dirs={"src/main/java": 0.3},
        frameworks={"pom.xml": "Maven", "build.gradle": "Gradle", "build.gradle.kts": "Gradle"},
        language="Java",
    ),
    ProjectRule(
        type="infrastructure",
        files={
            "main.tf": 0.5,
            "terraform.tfvars": 0.3,
            "ansible.cfg": 0.4,
            "playbook.yml": 0.3,
            "Chart.yaml": 0.4,
            "kustomization.yaml": 0.3,
            "docker-compose.yml": 0.2,
            "Dockerfile": 0.1,
        },
        dirs={"terraform": 0.3, "ansible": 0.3, "k8s": 0.3, "helm": 0.3},
        frameworks={"main.tf": "Terraform", "ansible.cfg": "Ansible", "Chart.yaml": "Helm"},
    ),
    ProjectRule(
        type="documentation",
        files={"mkdocs.yml": 0.5, "conf.py": 0.3, "_config.yml": 0.3, "book.toml": 0.4},
        dirs={"docs": 0.2, "doc": 0.1},
        frameworks={"mkdocs.yml": "MkDocs", "conf.py": "Sphinx", "_config.yml": "Jekyll", "book.toml": "mdBook"},
        language="Markdown",
    ),
)

LANGUAGE_EXTENSIONS: dict[str, str] = {
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".py": "Python",
    ".go": "Go",
    ".java": "Java",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".cc": "C++",
    ".cs": "C#",
    ".kt": "Kotlin",
    ".swift": "Swift",
    ".sh": "Shell",
}

TEST_DIRS = ("tests", "test", "spec", "__tests__")
DOC_DIRS = ("docs", "doc", "documentation")


class ProjectPlugin:
    """Detects project types, the primary language and a top-level structure summary."""

    def __init__(self, rules: tuple[ProjectRule, ...] = PROJECT_RULES) -> None:
        self._rules = rules

    @property
    def name(self) -> str:
        return "project"

    @property
    def priority(self) -> int:
        return 80

    def gather_context(self, cancel: CancelToken, base: ContextSnapshot) -> dict[str, Any]:
        root = base.working_directory
        language = detect_primary_language(root)

        types: list[ProjectType] = []
        for rule in self._rules:
            cancel.raise_if_cancelled("project")
            detected = evaluate_rule(rule, root, language)
            if detected is not None:
                types.append(detected)

        primary = primary_type(types)
        return {
            "types": [t.model_dump() for t in types],
            "primary_type": primary.model_dump() if primary else None,
            "primary_language": language,
            "structure": analyze_structure(root),
        }


def evaluate_rule(rule: ProjectRule, root: str, language: str) -> Optional[ProjectType]:
    """Score ``rule`` against ``root``; None when the score does not pass its threshold."""
    indicators: list[str] = []
    confidence = 0.0
    framework = ""

    for name, weight in rule.files.items():
        if os.path.isfile(os.path.join(root, name)):
            indicators.append(name)
            confidence += weight
            framework = framework or rule.frameworks.get(name, "")
    for name, weight in rule.dirs.items():
        if os.path.isdir(os.path.join(root, name)):
            indicators.append(f"{name}/")
            confidence += weight
    for name, fw in rule.frameworks.items():
        if name not in rule.files and os.path.isfile(os.path.join(root, name)):
            indicators.append(name)
            framework = framework or fw

    if confidence <= rule.threshold:
        return None
    return ProjectType(
        type=rule.type,
        language=rule.language or language,
        framework=framework,
        confidence=round(min(confidence, 1.0), 2),
        indicators=indicators,
    )


def primary_type(types: list[ProjectType]) -> Optional[ProjectType]:
    """Highest-confidence type; the earliest rule wins ties."""
    best: Optional[ProjectType] = None
    for candidate in types:
        if best is None or candidate.confidence > best.confidence:
            best = candidate
    return best


def detect_primary_language(root: str) -> str:
    """Language with the most top-level source files, or ``Unknown``."""
    try:
        names = os.listdir(root)
    except OSError:
        return "Unknown"
    counts = Counter(
        LANGUAGE_EXTENSIONS[ext]
        for ext in (os.path.splitext(name)[1].lower() for name in names)
        if ext in LANGUAGE_EXTENSIONS
    )
    if not counts:
        return "Unknown"
    return counts.most_common(1)[0][0]


def analyze_structure(root: str) -> dict[str, Any]:
    """Summarise the top level of ``root``: directories, extensions, tests and docs."""
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError:
        return {}

    dirs: list[str] = []
    extensions: Counter[str] = Counter()
    for entry in entries:
        if entry.name.startswith("."):
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                dirs.append(entry.name)
                continue
        except OSError:
            continue
        ext = os.path.splitext(entry.name)[1].lower()
        if ext:
            extensions[ext] += 1

    return {
        "top_level_dirs": dirs,
        "file_extensions": dict(extensions),
        "has_tests": any(name in dirs for name in TEST_DIRS),
        "has_docs": any(name in dirs for name in DOC_DIRS),
    }
