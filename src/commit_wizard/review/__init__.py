"""
Interactive review of generated commit messages.

See :mod:`commit_wizard.review.orchestrator` for the state machine.
"""

from .orchestrator import (  # noqa: F401
    ReviewAction,
    ReviewDecision,
    ReviewOrchestrator,
    ReviewOutcome,
    ReviewState,
)
