"""
Catalog of change-pattern signatures.

Each :class:`PatternSignature` is an immutable record describing what a
kind of change looks like in a diff: regular expressions applied to the
changed lines and glob patterns applied to file paths. The detector
evaluates every record the same way, so a new pattern is added by
appending a record to :data:`DEFAULT_CATALOG`, not by writing code.

Catalog order matters: it breaks confidence ties.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from commit_wizard.analysis.models import FileStatus
from commit_wizard.message.commit_message import COMMIT_TYPES


ADDED = "added"
REMOVED = "removed"
ANY = "any"


@dataclass(frozen=True)
class TextMatcher:
    """A regular expression applied to changed lines of one side of a diff."""

    pattern: str
    side: str = ANY
    flags: int = re.IGNORECASE
    _compiled: Optional["re.Pattern[str]"] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.side not in (ADDED, REMOVED, ANY):
            raise ValueError(f"invalid matcher side: {self.side!r}")

    @property
    def regex(self) -> "re.Pattern[str]":
        """The compiled pattern, built on first use.

        Raises ``re.error`` for an invalid pattern; the detector skips
        such signatures.
        """
        if self._compiled is None:
            object.__setattr__(self, "_compiled", re.compile(self.pattern, self.flags))
        return self._compiled


@dataclass(frozen=True)
class PatternSignature:
    """A heuristic rule mapping diff and path features to a commit type."""

    name: str
    commit_type_hint: str
    description: str
    scope_hint: Optional[str] = None
    text_matchers: Tuple[TextMatcher, ...] = ()
    path_matchers: Tuple[str, ...] = ()
    statuses: FrozenSet[FileStatus] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.commit_type_hint not in COMMIT_TYPES:
            raise ValueError(
                f"signature {self.name!r} has unknown commit type {self.commit_type_hint!r}"
            )


def _text(*patterns: str, side: str = ANY) -> Tuple[TextMatcher, ...]:
    return tuple(TextMatcher(p, side) for p in patterns)


DEFAULT_CATALOG: Tuple[PatternSignature, ...] = (
    PatternSignature(
        name="new-feature",
        commit_type_hint="feat",
        description="new functions, classes or modules introduced",
        text_matchers=_text(
            r"^\+\s*(export\s+)?(pub(\(crate\))?\s+)?(async\s+)?(def|fn|function|func)\s+\w+",
            r"^\+\s*(export\s+)?(pub\s+)?(abstract\s+)?(class|struct|interface|enum|trait|record)\s+\w+",
            side=ADDED,
        ),
        statuses=frozenset({FileStatus.ADDED}),
    ),
    PatternSignature(
        name="api-change",
        commit_type_hint="feat",
        scope_hint="api",
        description="public API surface or endpoints changed",
        text_matchers=_text(
            r"@(app|router|blueprint|bp)\.(route|get|post|put|patch|delete)\b",
            r"\b(endpoint|openapi|swagger|graphql|grpc)\b",
            r"\b(GET|POST|PUT|PATCH|DELETE)\s+/",
        ),
        path_matchers=("*api*", "*endpoint*", "*routes*", "*controller*", "*handlers/*"),
    ),
    PatternSignature(
        name="auth",
        commit_type_hint="feat",
        scope_hint="auth",
        description="authentication or authorization logic changed",
        text_matchers=_text(
            r"\bauth\w*",
            r"\b(login|logout|password|credential|oauth|jwt|session|bearer|token)s?\b",
        ),
        path_matchers=("*auth*", "*login*", "*session*", "*oauth*"),
    ),
    PatternSignature(
        name="security-fix",
        commit_type_hint="fix",
        scope_hint="security",
        description="security hardening or vulnerability fix",
        text_matchers=_text(
            r"\b(vulnerab\w*|exploit\w*|injection|xss|csrf|cve-\d+|saniti[sz]\w*)",
        ),
        path_matchers=("*security*",),
    ),
    PatternSignature(
        name="bug-fix",
        commit_type_hint="fix",
        description="bug fix indicators",
        text_matchers=_text(
            r"\b(fix(e[sd])?|bug|hotfix|regression|workaround)\b",
            r"\b(issue|problem|crash|off-by-one)\b",
        ),
    ),
    PatternSignature(
        name="performance",
        commit_type_hint="perf",
        description="performance tuning",
        text_matchers=_text(
            r"\b(optimi[sz]\w*|performance|faster|speed\s*up|latency|throughput)\b",
            r"\b(cache[sd]?|caching|memoi[sz]\w*|lru_cache|lazy)\b",
            side=ADDED,
        ),
    ),
    PatternSignature(
        name="refactor",
        commit_type_hint="refactor",
        description="code restructuring without behaviour change",
        text_matchers=_text(
            r"\b(refactor\w*|renam\w*|extract\w*|simplif\w*|clean\s*up|restructur\w*)\b",
        ),
    ),
    PatternSignature(
        name="deprecation",
        commit_type_hint="refactor",
        description="deprecations that may break callers",
        text_matchers=_text(r"@deprecated|\bdeprecat\w*|DeprecationWarning"),
    ),
    PatternSignature(
        name="database",
        commit_type_hint="feat",
        scope_hint="db",
        description="database schema or migration changes",
        text_matchers=_text(
            r"\b(create|alter|drop)\s+table\b",
            r"\b(migration|add_column|foreign\s*key)\b",
        ),
        path_matchers=("*migration*", "*.sql", "*schema*", "*/models/*", "*/db/*"),
    ),
    PatternSignature(
        name="ui",
        commit_type_hint="feat",
        scope_hint="ui",
        description="user interface components or styles changed",
        path_matchers=(
            "*component*", "*/views/*", "*/ui/*", "*.css", "*.scss", "*.less",
            "*.vue", "*.svelte", "*.tsx", "*.jsx", "*.html",
        ),
    ),
    PatternSignature(
        name="tests",
        commit_type_hint="test",
        scope_hint="tests",
        description="tests added or updated",
        text_matchers=_text(
            r"^\+\s*(async\s+)?def\s+test_\w+",
            r"\b(assert\w*|expect\(|@pytest\.|#\[test\]|describe\(|it\()",
            side=ADDED,
        ),
        path_matchers=(
            "tests/*", "test/*", "*/tests/*", "*/test/*", "*__tests__*",
            "test_*", "*/test_*", "*_test.*", "*.test.*", "*.spec.*",
        ),
    ),
    PatternSignature(
        name="docs",
        commit_type_hint="docs",
        scope_hint="docs",
        description="documentation updated",
        text_matchers=_text(r'^\+\s*("""|\'\'\'|///|/\*\*|\* @)', side=ADDED),
        path_matchers=("*.md", "*.rst", "*.adoc", "docs/*", "*/docs/*", "readme*", "changelog*"),
    ),
    PatternSignature(
        name="ci",
        commit_type_hint="ci",
        scope_hint="ci",
        description="continuous integration configuration modified",
        path_matchers=(
            ".github/workflows/*", ".gitlab-ci.yml", "jenkinsfile", ".circleci/*",
            "azure-pipelines.yml", ".travis.yml",
        ),
    ),
    PatternSignature(
        name="build",
        commit_type_hint="build",
        description="build system or dependency manifests updated",
        text_matchers=_text(r"^[+-]\s*\"?[\w.-]+\"?\s*[=:]\s*\"?[\^~>=<]*\d+\.\d+"),
        path_matchers=(
            "*cargo.toml", "*package.json", "*pyproject.toml", "*setup.py", "*setup.cfg",
            "*requirements*.txt", "*makefile", "*dockerfile", "*pom.xml", "*build.gradle*",
            "*go.mod", "*cmakelists.txt", "*gemfile",
        ),
    ),
    PatternSignature(
        name="config",
        commit_type_hint="chore",
        scope_hint="config",
        description="configuration or settings modified",
        path_matchers=(
            "*.json", "*.yaml", "*.yml", "*.toml", "*.ini", "*.cfg", "*.conf", "*.env",
            "*config*", "*settings*",
        ),
    ),
    PatternSignature(
        name="style",
        commit_type_hint="style",
        description="formatting and whitespace normalisation",
        text_matchers=_text(r"^[+-]\s*$", r"\b(noqa|prettier|eslint-disable|fmt:\s*(off|on))\b"),
    ),
)


def get_signature(name: str, catalog: Tuple[PatternSignature, ...] = DEFAULT_CATALOG) -> PatternSignature:
    """Look up a signature by name."""
    for signature in catalog:
        if signature.name == name:
            return signature
    raise KeyError(name)
