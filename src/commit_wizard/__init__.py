"""
Top-level package for commit_wizard.

The four pipeline operations are exposed here; the command line entry
point lives in :mod:`commit_wizard.cli`.
"""

__all__ = ["__version__", "analyze", "classify", "score", "validate"]

__version__ = "0.1.0"

from commit_wizard.analysis.change_filter import analyze  # noqa: E402
from commit_wizard.analysis.complexity import score  # noqa: E402
from commit_wizard.analysis.pattern_detector import classify  # noqa: E402
from commit_wizard.message.validator import validate  # noqa: E402
