"""
Git client implementation for commit_wizard.

This module wraps the few Git operations the commit assistant needs:
finding the repository, listing the changed files with their status,
size and (lazily loaded) diff, staging and committing. Staged changes
are analysed when there are any; otherwise the unstaged changes of
tracked files and the untracked files are used. All subprocess calls go
through :meth:`GitClient._run` so that unit tests can mock them easily.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from commit_wizard.analysis.models import ChangedFile, FileStatus


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def is_repo(path: Path) -> bool:
        """Return True if the given path is the root of a Git repository."""
        return (path / ".git").exists()

    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Walk upwards from ``start`` until a ``.git`` entry is found."""
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If Git cannot be started, or exits with a non-zero status
            when ``check`` is True.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            logger.error("Failed to run Git: %s", exc)
            raise GitError(f"failed to run git: {exc}") from exc

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------
    def has_staged_changes(self) -> bool:
        """Return True if the index differs from ``HEAD``."""
        result = self._run(["diff", "--cached", "--quiet"], check=False)
        if result.returncode not in (0, 1):
            raise GitError(result.stderr.strip() or "git diff --cached failed")
        return result.returncode == 1

    def _diff_args(self, staged: bool) -> List[str]:
        return ["diff", "--cached", "-M"] if staged else ["diff", "-M"]

    def _binary_paths(self, staged: bool) -> Set[str]:
        """Paths that ``git diff --numstat`` reports as binary (``-\\t-``)."""
        result = self._run(self._diff_args(staged) + ["--numstat", "-z"], check=True)
        binary: Set[str] = set()
        fields = result.stdout.split("\0")
        index = 0
        while index < len(fields):
            entry = fields[index]
            index += 1
            if not entry:
                continue
            parts = entry.split("\t")
            if len(parts) < 3:
                continue
            added, removed, path = parts[0], parts[1], parts[2]
            if not path:
                # Renames are followed by the old and the new path.
                path = fields[index + 1] if index + 1 < len(fields) else ""
                index += 2
            if added == "-" and removed == "-" and path:
                binary.add(path)
        return binary

    def _name_status(self, staged: bool) -> List[Tuple[str, str, Optional[str]]]:
        """Return ``(status letter, path, old path)`` triples.

        ``-z`` keeps paths verbatim; without it Git quotes non-ASCII
        names. Renames and copies carry the old and the new path.
        """
        result = self._run(self._diff_args(staged) + ["--name-status", "-z"], check=True)
        fields = result.stdout.split("\0")
        entries: List[Tuple[str, str, Optional[str]]] = []
        index = 0
        while index < len(fields):
            code = fields[index]
            index += 1
            if not code:
                continue
            if code.startswith(("R", "C")):
                if index + 1 >= len(fields):
                    break
                entries.append((code[0], fields[index + 1], fields[index]))
                index += 2
            elif index < len(fields):
                entries.append((code[0], fields[index], None))
                index += 1
        return entries

    def _untracked_paths(self) -> List[str]:
        """Untracked files that are not ignored, with directories expanded."""
        result = self._run(["ls-files", "--others", "--exclude-standard", "-z"], check=True)
        return [path for path in result.stdout.split("\0") if path]

    def _file_size(self, path: str) -> int:
        try:
            return (self.repo_root / path).stat().st_size
        except OSError:
            return 0

    def get_changes(self) -> List[ChangedFile]:
        """Get the changed files of the repository.

        Staged changes are returned when the index differs from ``HEAD``;
        otherwise the unstaged changes of tracked files followed by the
        untracked files, which count as added. Each file's diff is loaded
        on first access.

        Returns
        -------
        List[ChangedFile]
            The changed files in Git's order.

        Raises
        ------
        GitError
            If a Git command fails.
        """
        staged = self.has_staged_changes()
        logger.debug("Analysing %s changes", "staged" if staged else "unstaged")
        binary = self._binary_paths(staged)
        changes: List[ChangedFile] = []
        for code, path, old_path in self._name_status(staged):
            changes.append(
                ChangedFile(
                    path=path,
                    status=FileStatus.from_code(code),
                    size_bytes=self._file_size(path),
                    diff_loader=self._make_loader(staged, path, old_path),
                    binary=path in binary,
                )
            )
        if not staged:
            for path in self._untracked_paths():
                changes.append(
                    ChangedFile(
                        path=path,
                        status=FileStatus.ADDED,
                        size_bytes=self._file_size(path),
                        diff_loader=self._make_untracked_loader(path),
                    )
                )
        return changes

    def _make_loader(self, staged: bool, path: str, old_path: Optional[str]):
        paths = [old_path, path] if old_path else [path]

        def load() -> str:
            return self._run(self._diff_args(staged) + ["--"] + paths, check=True).stdout

        return load

    def _make_untracked_loader(self, path: str):
        def load() -> str:
            # --no-index exits with 1 when the files differ, which they always do.
            result = self._run(["diff", "--no-index", "--", "/dev/null", path], check=False)
            if result.returncode not in (0, 1):
                raise GitError(result.stderr.strip() or f"git diff --no-index failed for {path}")
            return result.stdout

        return load

    def changed_paths(self) -> List[str]:
        """Paths of every staged, unstaged or untracked change."""
        seen: Dict[str, None] = {}
        for staged in (True, False):
            for _, path, old_path in self._name_status(staged):
                if old_path:
                    seen.setdefault(old_path, None)
                seen.setdefault(path, None)
        for path in self._untracked_paths():
            seen.setdefault(path, None)
        return list(seen)

    # ------------------------------------------------------------------
    # Staging and committing
    # ------------------------------------------------------------------
    def stage_files(self, files: List[str]) -> None:
        """Stage the given files for commit.

        Deleted files are staged with ``git rm``; everything else with
        ``git add``.
        """
        for file in files:
            if (self.repo_root / file).exists():
                self._run(["add", "--", file], check=True)
            else:
                self._run(["rm", "--cached", "--quiet", "--", file], check=True)

    def commit(self, message: str) -> None:
        """Create a commit with the given (possibly multi-line) message.

        When the index matches ``HEAD`` the unstaged and untracked
        changes are staged first, so the changes that were analysed are
        the ones committed. An existing staged selection is committed as is.
        """
        if not self.has_staged_changes():
            self.stage_files(self.changed_paths())
        self._run(["commit", "-m", message], check=True)
