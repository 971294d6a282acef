"""
Selection of the changed content that is shown to the language model.

The filter drops files that carry no useful signal (binary blobs, lock
files, generated output, oversized files), ranks the rest so that source
code is seen before tests and tests before configuration or
documentation, and then fills a line budget with whole diff hunks. A
file that does not fit is cut at its last complete hunk so the diff
headers stay parseable; a file whose first hunk alone is too long keeps
only its header.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from commit_wizard.analysis.models import (
    AnalysisBudget,
    ChangedFile,
    ExcludedFile,
    ExclusionReason,
    FilterResult,
    split_hunks,
)


logger = logging.getLogger(__name__)
# Attach a null handler so that library use stays silent until the CLI
# configures logging.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class NoChanges(Exception):
    """Raised when the working tree has no changed files at all.

    The empty-but-valid :class:`FilterResult` is available as ``result``.
    """

    def __init__(self, message: str = "no changes detected in the repository") -> None:
        super().__init__(message)
        self.result = FilterResult()


class EmptySelection(Exception):
    """Raised when every changed file was excluded from the analysis."""

    def __init__(self, excluded: Sequence[ExcludedFile]) -> None:
        self.excluded = tuple(excluded)
        reasons = ", ".join(f"{item.path}: {item.reason.value}" for item in self.excluded)
        super().__init__(f"nothing meaningful to analyze ({reasons})")


def exclusion_reason(file: ChangedFile, budget: AnalysisBudget) -> Optional[ExclusionReason]:
    """Return why ``file`` must be excluded, or ``None`` if it qualifies.

    Path and size checks come first; the diff is only read for files
    that pass them.
    """
    if file.has_binary_path:
        return ExclusionReason.BINARY
    if file.is_lock_file:
        return ExclusionReason.LOCK_FILE
    if file.has_generated_path:
        return ExclusionReason.GENERATED
    if file.size_bytes > budget.max_file_size_bytes:
        return ExclusionReason.TOO_LARGE
    if file.is_binary:
        return ExclusionReason.BINARY
    if file.is_generated:
        return ExclusionReason.GENERATED
    return None


def rank_files(files: Iterable[ChangedFile]) -> List[ChangedFile]:
    """Order files by category rank, then by ascending path."""
    return sorted(files, key=lambda f: (f.category.rank, f.path))


def _fit_hunks(file: ChangedFile, remaining: int) -> ChangedFile:
    """Cut ``file`` to its header plus the complete hunks that fit.

    When not even the first hunk fits, only the header is kept (or
    nothing, if the header itself does not fit), so the file's path and
    status still reach the detector and the prompt.
    """
    header, hunks = split_hunks(file.diff_text)
    if len(header) > remaining:
        return file.with_diff("")
    lines = list(header)
    for hunk in hunks:
        if len(lines) + len(hunk) > remaining:
            break
        lines.extend(hunk)
    return file.with_diff("\n".join(lines))


def analyze(files: Sequence[ChangedFile], budget: AnalysisBudget) -> FilterResult:
    """Select and truncate the changed files that are worth analyzing.

    Parameters
    ----------
    files : Sequence[ChangedFile]
        Every file touched in the working tree.
    budget : AnalysisBudget
        File size, file count and diff line limits.

    Returns
    -------
    FilterResult
        Kept files in priority order (possibly truncated) and the excluded
        files with their reasons. Unpacks as ``(kept, excluded)``.

    Raises
    ------
    NoChanges
        If ``files`` is empty.
    EmptySelection
        If every file was excluded as binary, lock, generated, too large
        or over the file count limit. The line budget alone never empties
        the selection: the first ranked file is always kept, cut down to
        its header when needed.
    """
    if not files:
        raise NoChanges()

    excluded: List[ExcludedFile] = []
    eligible: List[ChangedFile] = []
    for file in files:
        reason = exclusion_reason(file, budget)
        if reason is None:
            eligible.append(file)
        else:
            logger.debug("Excluding %s: %s", file.path, reason.value)
            excluded.append(ExcludedFile(file, reason))

    ranked = rank_files(eligible)
    selected = ranked[: budget.max_file_count]
    for file in ranked[budget.max_file_count:]:
        logger.debug("Excluding %s: %s", file.path, ExclusionReason.OVER_FILE_COUNT_LIMIT.value)
        excluded.append(ExcludedFile(file, ExclusionReason.OVER_FILE_COUNT_LIMIT))

    kept: List[ChangedFile] = []
    total = 0
    truncated = False
    for index, file in enumerate(selected):
        lines = file.diff_line_count
        if total + lines <= budget.max_total_diff_lines:
            kept.append(file)
            total += lines
            continue

        truncated = True
        remaining = budget.max_total_diff_lines - total
        cut = _fit_hunks(file, remaining)
        cut_lines = cut.diff_line_count
        logger.debug("Truncated %s from %d to %d diff lines", file.path, lines, cut_lines)
        kept.append(cut)
        total += cut_lines
        for dropped in selected[index + 1:]:
            logger.debug("Excluding %s: %s", dropped.path, ExclusionReason.OVER_DIFF_LINE_LIMIT.value)
            excluded.append(ExcludedFile(dropped, ExclusionReason.OVER_DIFF_LINE_LIMIT))
        break

    if not kept:
        raise EmptySelection(excluded)

    logger.debug(
        "Kept %d file(s) with %d diff line(s); excluded %d", len(kept), total, len(excluded)
    )
    return FilterResult(
        kept=tuple(kept),
        excluded=tuple(excluded),
        truncated=truncated,
        total_diff_lines=total,
    )


def render_diff(kept: Iterable[ChangedFile]) -> str:
    """Concatenate kept diffs, each preceded by a file boundary marker."""
    parts: List[str] = []
    for file in kept:
        marker = f"### {file.status.name.lower()} {file.path}"
        body = file.diff_text.rstrip("\n")
        parts.append(f"{marker}\n{body}" if body else marker)
    return "\n".join(parts)


def summarize_exclusions(excluded: Iterable[ExcludedFile]) -> List[Tuple[str, str]]:
    """Return ``(path, reason)`` pairs for display."""
    return [(item.path, item.reason.value) for item in excluded]
