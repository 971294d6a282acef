"""
Value types shared by the analysis pipeline.

A :class:`ChangedFile` describes one file touched in the working tree.
The Git collaborator builds them; the change filter, pattern detector
and complexity scorer only read them. Diff text is loaded on first
access through an optional loader and cached, so each file costs at
most one ``git diff`` call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Iterator, List, Optional, Tuple


class FileStatus(Enum):
    """Status of a file in the working tree."""

    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"
    RENAMED = "R"

    @classmethod
    def from_code(cls, code: str) -> "FileStatus":
        """Map a Git status letter (``A``, ``M``, ``D``, ``R``...) to a status.

        Copies count as additions and type changes as modifications.
        Unknown letters fall back to ``MODIFIED``.
        """
        letter = (code or "M").strip()[:1].upper()
        if letter in {"A", "C", "?"}:
            return cls.ADDED
        if letter == "D":
            return cls.DELETED
        if letter == "R":
            return cls.RENAMED
        return cls.MODIFIED


class FileCategory(Enum):
    """Purpose of a file, used to rank files for analysis."""

    SOURCE = "source"
    TEST = "test"
    CONFIG = "config"
    DOCS = "docs"
    OTHER = "other"

    @property
    def rank(self) -> int:
        """Lower ranks are analyzed first; config and docs share a rank."""
        return _CATEGORY_RANKS[self]


_CATEGORY_RANKS = {
    FileCategory.SOURCE: 0,
    FileCategory.TEST: 1,
    FileCategory.CONFIG: 2,
    FileCategory.DOCS: 2,
    FileCategory.OTHER: 3,
}


class ExclusionReason(Enum):
    """Why a changed file was left out of the analysis."""

    TOO_LARGE = "TooLarge"
    BINARY = "Binary"
    LOCK_FILE = "LockFile"
    GENERATED = "Generated"
    OVER_FILE_COUNT_LIMIT = "OverFileCountLimit"
    OVER_DIFF_LINE_LIMIT = "OverDiffLineLimit"


# ---------------------------------------------------------------------------
# Path heuristics
# ---------------------------------------------------------------------------

BINARY_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".ico", ".webp", ".tif", ".tiff",
    ".mp3", ".wav", ".ogg", ".flac", ".mp4", ".avi", ".mov", ".wmv", ".flv", ".mkv",
    ".woff", ".woff2", ".eot", ".ttf", ".otf",
    ".exe", ".dll", ".so", ".dylib", ".bin", ".dat", ".o", ".obj", ".lib", ".a",
    ".class", ".jar", ".war", ".ear", ".pyc", ".pyo", ".whl",
    ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".rar", ".7z",
    ".pdf", ".psd", ".sqlite", ".db",
})

LOCK_FILE_NAMES = frozenset({
    "cargo.lock", "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
    "poetry.lock", "pipfile.lock", "composer.lock", "gemfile.lock",
    "go.sum", "uv.lock", "npm-shrinkwrap.json", "bun.lockb", "flake.lock",
})

GENERATED_DIRECTORIES = frozenset({
    "node_modules", "dist", "build", "vendor", "__pycache__", ".next", "target",
})

_GENERATED_NAME_RE = re.compile(
    r"(\.min\.|\.bundle\.|\.packed\.|\.compiled\.|\.generated\.|_pb2\.py$|_pb2_grpc\.py$|\.pb\.go$|\.map$)",
    re.IGNORECASE,
)
_GENERATED_MARKER_RE = re.compile(r"@generated|do not edit", re.IGNORECASE)
_BINARY_DIFF_RE = re.compile(r"^(Binary files .* differ|GIT binary patch)$", re.MULTILINE)

_TEST_RE = re.compile(
    r"(^|/)(tests?|specs?|__tests__)/|(^|/)test_[^/]*$|_test\.[^/]+$|_spec\.[^/]+$"
    r"|\.test\.[^/]+$|\.spec\.[^/]+$",
    re.IGNORECASE,
)
_DOCS_EXTENSIONS = frozenset({".md", ".rst", ".txt", ".adoc"})
_DOCS_NAMES = ("readme", "changelog", "license", "contributing")
_CONFIG_EXTENSIONS = frozenset({
    ".json", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf", ".config",
    ".xml", ".properties", ".env",
})
_CONFIG_NAMES = frozenset({
    "makefile", "dockerfile", "docker-compose.yml", "docker-compose.yaml",
    "setup.py", "jenkinsfile", ".gitignore", ".editorconfig", ".env",
})
_SOURCE_EXTENSIONS = frozenset({
    ".py", ".pyi", ".rs", ".go", ".java", ".kt", ".kts", ".scala", ".c", ".h",
    ".cc", ".cpp", ".hpp", ".cs", ".vb", ".fs", ".swift", ".m", ".mm",
    ".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".vue", ".svelte",
    ".rb", ".php", ".pl", ".lua", ".dart", ".ex", ".exs", ".erl", ".clj",
    ".hs", ".ml", ".r", ".jl", ".sh", ".bash", ".zsh", ".ps1", ".sql",
    ".css", ".scss", ".sass", ".less", ".html", ".htm", ".razor", ".cshtml",
})


def categorize_path(path: str) -> FileCategory:
    """Classify a repository path into a ranking category.

    Test patterns are checked first because test files usually carry a
    source extension.
    """
    posix = PurePosixPath(path)
    name = posix.name.lower()
    ext = posix.suffix.lower()
    if _TEST_RE.search(path):
        return FileCategory.TEST
    if ext in _DOCS_EXTENSIONS or name.startswith(_DOCS_NAMES) or "docs" in posix.parts:
        return FileCategory.DOCS
    if ext in _CONFIG_EXTENSIONS or name in _CONFIG_NAMES:
        return FileCategory.CONFIG
    if ext in _SOURCE_EXTENSIONS:
        return FileCategory.SOURCE
    return FileCategory.OTHER


# ---------------------------------------------------------------------------
# Diff helpers
# ---------------------------------------------------------------------------

def iter_change_lines(diff_text: str) -> Iterator[str]:
    """Yield the ``+``/``-`` lines of a unified diff, skipping file headers.

    Inside a hunk every ``+``/``-`` line counts, even one whose content
    itself starts with ``--``.
    """
    in_hunk = False
    for line in diff_text.splitlines():
        if line.startswith("@@"):
            in_hunk = True
            continue
        if line.startswith("diff --git"):
            in_hunk = False
            continue
        if not in_hunk and (line in ("+++", "---") or line.startswith(("+++ ", "--- "))):
            continue
        if line.startswith(("+", "-")):
            yield line


def split_hunks(diff_text: str) -> Tuple[List[str], List[List[str]]]:
    """Split a unified diff into its header lines and its hunks.

    Returns
    -------
    Tuple[List[str], List[List[str]]]
        ``(header, hunks)`` where every hunk starts with its ``@@`` line.
    """
    header: List[str] = []
    hunks: List[List[str]] = []
    for line in diff_text.splitlines():
        if line.startswith("@@"):
            hunks.append([line])
        elif hunks:
            hunks[-1].append(line)
        else:
            header.append(line)
    return header, hunks


# ---------------------------------------------------------------------------
# ChangedFile
# ---------------------------------------------------------------------------

@dataclass
class ChangedFile:
    """One file touched in the working tree.

    Parameters
    ----------
    path : str
        Repository-relative path using forward slashes.
    status : FileStatus
        Added, modified, deleted or renamed.
    size_bytes : int
        Size of the file's current content.
    diff : str, optional
        Unified diff text when it is already known.
    diff_loader : Callable[[], str], optional
        Called once on first access to :attr:`diff_text` when ``diff``
        was not given.
    binary : bool
        Binary flag reported by the VCS (``git diff --numstat``).
    """

    path: str
    status: FileStatus = FileStatus.MODIFIED
    size_bytes: int = 0
    diff: Optional[str] = field(default=None, repr=False)
    diff_loader: Optional[Callable[[], str]] = field(default=None, repr=False, compare=False)
    binary: bool = False

    @property
    def diff_text(self) -> str:
        if self.diff is None:
            self.diff = self.diff_loader() if self.diff_loader is not None else ""
        return self.diff

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def category(self) -> FileCategory:
        return categorize_path(self.path)

    @property
    def has_binary_path(self) -> bool:
        """Binary by VCS flag or extension, without reading the diff."""
        return self.binary or PurePosixPath(self.path).suffix.lower() in BINARY_EXTENSIONS

    @property
    def is_binary(self) -> bool:
        if self.has_binary_path:
            return True
        text = self.diff_text
        return "\x00" in text or bool(_BINARY_DIFF_RE.search(text))

    @property
    def is_lock_file(self) -> bool:
        name = self.name.lower()
        return name in LOCK_FILE_NAMES or name.endswith(".lock")

    @property
    def has_generated_path(self) -> bool:
        """Generated by directory or file name, without reading the diff."""
        parts = [part.lower() for part in PurePosixPath(self.path).parts[:-1]]
        if any(part in GENERATED_DIRECTORIES or part.endswith(".egg-info") for part in parts):
            return True
        return bool(_GENERATED_NAME_RE.search(self.name))

    @property
    def is_generated(self) -> bool:
        if self.has_generated_path:
            return True
        # Generated sources announce themselves near the top of the file.
        added = [line for line in iter_change_lines(self.diff_text) if line.startswith("+")]
        return any(_GENERATED_MARKER_RE.search(line) for line in added[:5])

    @property
    def added_lines(self) -> int:
        return sum(1 for line in iter_change_lines(self.diff_text) if line.startswith("+"))

    @property
    def removed_lines(self) -> int:
        return sum(1 for line in iter_change_lines(self.diff_text) if line.startswith("-"))

    @property
    def changed_lines(self) -> int:
        return self.added_lines + self.removed_lines

    @property
    def diff_line_count(self) -> int:
        """Number of diff lines this file contributes to the budget."""
        if self.is_binary:
            return 0
        return len(self.diff_text.splitlines())

    def with_diff(self, diff: str) -> "ChangedFile":
        """Return a copy carrying ``diff`` (used for truncated output)."""
        return ChangedFile(
            path=self.path,
            status=self.status,
            size_bytes=self.size_bytes,
            diff=diff,
            binary=self.binary,
        )


@dataclass(frozen=True)
class AnalysisBudget:
    """Size limits applied by the change filter."""

    max_file_size_kb: int = 100
    max_file_count: int = 10
    max_total_diff_lines: int = 2000

    def __post_init__(self) -> None:
        for name in ("max_file_size_kb", "max_file_count", "max_total_diff_lines"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_kb * 1024


@dataclass(frozen=True)
class ExcludedFile:
    """A changed file that was left out, with the reason."""

    file: ChangedFile
    reason: ExclusionReason

    @property
    def path(self) -> str:
        return self.file.path


@dataclass(frozen=True)
class FilterResult:
    """Output of the change filter.

    Unpacks as ``(kept, excluded)``.
    """

    kept: Tuple[ChangedFile, ...] = ()
    excluded: Tuple[ExcludedFile, ...] = ()
    truncated: bool = False
    total_diff_lines: int = 0

    def __iter__(self) -> Iterator[tuple]:
        return iter((self.kept, self.excluded))

    @property
    def kept_paths(self) -> List[str]:
        return [f.path for f in self.kept]

    @property
    def is_empty(self) -> bool:
        return not self.kept and not self.excluded


@dataclass(frozen=True)
class SignatureMatch:
    """A catalog signature that cleared the confidence threshold."""

    name: str
    confidence: float
    commit_type_hint: str
    scope_hint: Optional[str] = None


@dataclass(frozen=True)
class ClassificationResult:
    """Output of the pattern detector.

    ``matches`` is ordered by descending confidence, ties by catalog
    order. ``candidate_scopes`` keeps first-seen order.
    """

    matches: Tuple[SignatureMatch, ...] = ()
    primary_type: str = "chore"
    candidate_scopes: Tuple[str, ...] = ()
    path_scopes: Tuple[str, ...] = ()
    analyzed_lines: int = 0

    @classmethod
    def empty(cls) -> "ClassificationResult":
        return cls()

    @property
    def signature_names(self) -> List[str]:
        return [match.name for match in self.matches]

    def confidence_of(self, name: str) -> float:
        for match in self.matches:
            if match.name == name:
                return match.confidence
        return 0.0

    def scope_confidence(self, scope: str) -> float:
        """Best confidence among retained signatures hinting ``scope``."""
        return max(
            (match.confidence for match in self.matches if match.scope_hint == scope),
            default=0.0,
        )
