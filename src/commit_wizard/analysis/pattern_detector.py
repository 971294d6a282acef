"""
Heuristic classification of a change set.

The detector runs every signature of a catalog (see
:mod:`commit_wizard.analysis.signatures`) against the kept diffs and
file paths and turns the hits into a confidence score. The best
scoring signature decides the commit type that is suggested to the
language model; scope hints are only kept when the changed paths back
them up.

The detector is pure and never raises for any list of changed files.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, FrozenSet, List, Sequence, Tuple

from commit_wizard.analysis.models import (
    ChangedFile,
    ClassificationResult,
    SignatureMatch,
    iter_change_lines,
)
from commit_wizard.analysis.signatures import ADDED, DEFAULT_CATALOG, REMOVED, PatternSignature


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


GENERIC_PATH_TOKENS: FrozenSet[str] = frozenset({
    "src", "lib", "app", "source", "pkg", "internal", "main", "index", "mod",
    "__init__", "core", "common", "utils",
})


@dataclass(frozen=True)
class DetectorSettings:
    """Tuning constants for the pattern detector.

    Confidence of a signature is
    ``min(1, text_hits / analyzed_lines * density_scale + path_hits / files * path_weight)``.
    """

    min_confidence: float = 0.15
    density_scale: float = 4.0
    path_weight: float = 0.6
    fallback_type: str = "chore"
    generic_path_tokens: FrozenSet[str] = GENERIC_PATH_TOKENS


def path_tokens(paths: Sequence[str], generic: FrozenSet[str] = GENERIC_PATH_TOKENS) -> List[str]:
    """Return the scope-like tokens of ``paths`` in first-seen order.

    Every directory component and the file stem count as tokens. They
    are lower-cased, leading dots are stripped and generic names such as
    ``src`` are skipped.
    """
    tokens: List[str] = []
    for path in paths:
        posix = PurePosixPath(path)
        for raw in list(posix.parts[:-1]) + [posix.stem]:
            token = raw.lower().lstrip(".")
            if token and token not in generic and token not in tokens:
                tokens.append(token)
    return tokens


def _scope_backed_by(hint: str, tokens: Sequence[str]) -> bool:
    return any(token == hint or token.startswith(hint) for token in tokens)


def _side_lines(added: List[str], removed: List[str], side: str) -> List[str]:
    if side == ADDED:
        return added
    if side == REMOVED:
        return removed
    return added + removed


def _text_hits(signature: PatternSignature, added: List[str], removed: List[str]) -> int:
    hits = 0
    for matcher in signature.text_matchers:
        regex = matcher.regex
        for line in _side_lines(added, removed, matcher.side):
            hits += sum(1 for _ in regex.finditer(line))
    return hits


def _path_hits(signature: PatternSignature, files: Sequence[ChangedFile]) -> int:
    hits = 0
    for file in files:
        lowered = file.path.lower()
        if file.status in signature.statuses or any(
            fnmatch.fnmatchcase(lowered, pattern.lower()) for pattern in signature.path_matchers
        ):
            hits += 1
    return hits


def classify(
    kept: Sequence[ChangedFile],
    catalog: Tuple[PatternSignature, ...] = DEFAULT_CATALOG,
    settings: DetectorSettings = DetectorSettings(),
) -> ClassificationResult:
    """Match the kept files against a signature catalog.

    Parameters
    ----------
    kept : Sequence[ChangedFile]
        Files retained by the change filter, in priority order.
    catalog : Tuple[PatternSignature, ...]
        Ordered signatures; order breaks confidence ties.
    settings : DetectorSettings
        Confidence threshold and weights.

    Returns
    -------
    ClassificationResult
        Retained matches ordered by descending confidence, the primary
        commit type and the candidate scopes. Empty input yields
        :meth:`ClassificationResult.empty`.
    """
    if not kept:
        return ClassificationResult.empty()

    added: List[str] = []
    removed: List[str] = []
    for file in kept:
        for line in iter_change_lines(file.diff_text):
            (added if line.startswith("+") else removed).append(line)
    analyzed = len(added) + len(removed)
    file_count = len(kept)

    scored: List[Tuple[float, int, PatternSignature]] = []
    for order, signature in enumerate(catalog):
        try:
            text_hits = _text_hits(signature, added, removed)
        except re.error as exc:
            logger.warning("Skipping signature %s with invalid pattern: %s", signature.name, exc)
            continue
        path_hits = _path_hits(signature, kept)
        density = text_hits / analyzed * settings.density_scale if analyzed else 0.0
        confidence = min(1.0, density + path_hits / file_count * settings.path_weight)
        if confidence >= settings.min_confidence:
            logger.debug(
                "Signature %s matched: text_hits=%d path_hits=%d confidence=%.3f",
                signature.name, text_hits, path_hits, confidence,
            )
            scored.append((confidence, order, signature))

    # Stable: equal confidences keep catalog order.
    scored.sort(key=lambda item: (-item[0], item[1]))
    matches = tuple(
        SignatureMatch(
            name=signature.name,
            confidence=confidence,
            commit_type_hint=signature.commit_type_hint,
            scope_hint=signature.scope_hint,
        )
        for confidence, _, signature in scored
    )

    tokens = path_tokens([file.path for file in kept], settings.generic_path_tokens)
    seen: Dict[str, None] = {}
    for match in matches:
        hint = match.scope_hint
        if hint and hint not in seen and _scope_backed_by(hint, tokens):
            seen[hint] = None

    primary = matches[0].commit_type_hint if matches else settings.fallback_type
    result = ClassificationResult(
        matches=matches,
        primary_type=primary,
        candidate_scopes=tuple(seen),
        path_scopes=tuple(tokens),
        analyzed_lines=analyzed,
    )
    logger.debug(
        "Classified %d file(s): primary=%s scopes=%s", file_count, primary, list(result.candidate_scopes)
    )
    return result
