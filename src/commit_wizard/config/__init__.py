"""
Configuration for commit_wizard.

:mod:`commit_wizard.config.loader` reads the optional user
configuration file and :mod:`commit_wizard.config.settings` turns it
into the immutable :class:`PipelineConfig` used by a run.
"""

from .loader import ConfigError, load_config  # noqa: F401
from .settings import PipelineConfig, build_pipeline_config  # noqa: F401
