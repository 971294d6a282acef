"""
Complexity scoring of a change set.

The score combines three bounded components (file count, changed line
count on a logarithmic scale and the number of distinct patterns the
detector found) into a value between ``0`` and ``max_score``. The tier
derived from the value decides which model is asked for the message
and whether the message needs a body.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from commit_wizard.analysis.models import ChangedFile, ClassificationResult


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class ComplexityTier(Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


@dataclass(frozen=True)
class ScoringSettings:
    """Weights, caps and tier thresholds for the complexity scorer."""

    max_score: float = 5.0
    file_cap: int = 10
    line_cap: int = 1000
    diversity_cap: int = 5
    file_weight: float = 0.35
    line_weight: float = 0.40
    diversity_weight: float = 0.25
    simple_threshold: float = 1.5
    complex_threshold: float = 2.5
    body_file_count: int = 5
    body_line_count: int = 100

    def __post_init__(self) -> None:
        if not 0 <= self.simple_threshold <= self.complex_threshold <= self.max_score:
            raise ValueError("tier thresholds must satisfy 0 <= simple <= complex <= max_score")
        if min(self.file_cap, self.line_cap, self.diversity_cap) <= 0:
            raise ValueError("scoring caps must be positive")
        total = self.file_weight + self.line_weight + self.diversity_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"scoring weights must sum to 1.0, got {total}")

    def tier_for(self, value: float) -> ComplexityTier:
        if value < self.simple_threshold:
            return ComplexityTier.SIMPLE
        if value < self.complex_threshold:
            return ComplexityTier.MODERATE
        return ComplexityTier.COMPLEX


@dataclass(frozen=True)
class ComplexityScore:
    """Result of :func:`score`.

    ``files``, ``lines`` and ``diversity`` are the normalised components
    in ``[0, 1]``; they are kept for diagnostics.
    """

    value: float
    tier: ComplexityTier
    requires_body: bool = False
    files: float = 0.0
    lines: float = 0.0
    diversity: float = 0.0

    def describe(self) -> str:
        return f"{self.tier.value} ({self.value:.2f})"


def score(
    kept: Sequence[ChangedFile],
    classification: ClassificationResult,
    settings: ScoringSettings = ScoringSettings(),
) -> ComplexityScore:
    """Score the kept files of a change set.

    Parameters
    ----------
    kept : Sequence[ChangedFile]
        Files retained by the change filter.
    classification : ClassificationResult
        Output of the pattern detector for the same files.
    settings : ScoringSettings
        Caps, weights and tier thresholds.

    Returns
    -------
    ComplexityScore
        Value in ``[0, max_score]``, the tier and whether a body is
        required.
    """
    file_count = len(kept)
    changed = sum(file.changed_lines for file in kept)
    pattern_count = len(classification.matches)

    files = min(file_count, settings.file_cap) / settings.file_cap
    lines = min(1.0, math.log1p(changed) / math.log1p(settings.line_cap))
    diversity = min(pattern_count, settings.diversity_cap) / settings.diversity_cap
    weighted = (
        settings.file_weight * files
        + settings.line_weight * lines
        + settings.diversity_weight * diversity
    )
    value = min(settings.max_score, max(0.0, settings.max_score * weighted))
    tier = settings.tier_for(value)
    requires_body = (
        tier is ComplexityTier.COMPLEX
        or file_count >= settings.body_file_count
        or changed > settings.body_line_count
    )
    logger.debug(
        "Complexity %.3f (%s): files=%.2f lines=%.2f diversity=%.2f changed=%d",
        value, tier.value, files, lines, diversity, changed,
    )
    return ComplexityScore(
        value=value,
        tier=tier,
        requires_body=requires_body,
        files=files,
        lines=lines,
        diversity=diversity,
    )
