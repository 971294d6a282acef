"""
Commit message model and validation.

:class:`CommitMessage` is the validated value type and
:func:`validate` turns raw model output into one.
"""

from .commit_message import COMMIT_TYPES, CommitMessage, Footer, ValidationError  # noqa: F401
from .validator import ValidatorSettings, strip_thinking_tags, validate  # noqa: F401
