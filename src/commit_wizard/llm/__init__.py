"""
Language model integration for commit_wizard.

This package contains the :class:`OpenRouterClient` and the
:class:`OllamaClient`, the provider and model selection helpers and the
prompt builder.
"""

from .provider import ExternalProviderError, create_client, select_model  # noqa: F401
from .ollama_client import OllamaClient  # noqa: F401
from .openrouter_client import OpenRouterClient  # noqa: F401
from .prompt_builder import build_prompt, system_prompt  # noqa: F401
