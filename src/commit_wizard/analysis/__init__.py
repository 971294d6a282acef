"""
Change analysis for commit_wizard.

The analysis pipeline is made of three pure stages: the change filter
(:mod:`commit_wizard.analysis.change_filter`) picks what the model may
see, the pattern detector (:mod:`commit_wizard.analysis.pattern_detector`)
suggests a commit type and scopes and the complexity scorer
(:mod:`commit_wizard.analysis.complexity`) rates the change set.
"""

from .models import (  # noqa: F401
    AnalysisBudget,
    ChangedFile,
    ClassificationResult,
    ExcludedFile,
    ExclusionReason,
    FileStatus,
    FilterResult,
    SignatureMatch,
)
from .change_filter import EmptySelection, NoChanges, analyze  # noqa: F401
from .pattern_detector import DetectorSettings, classify  # noqa: F401
from .complexity import ComplexityScore, ComplexityTier, ScoringSettings, score  # noqa: F401
