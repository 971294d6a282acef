"""
Version control system (VCS) integration.

The :class:`GitClient` lists the changed files of a Git repository and
creates the commit once a message is accepted.
"""

from .git_client import GitClient, GitError  # noqa: F401
