"""
Provider selection for the language model collaborators.

Both clients expose ``generate(prompt, model=None, system=None) -> str``
and raise :class:`ExternalProviderError` on any failure. This module
picks the client from the configuration and the model from the
complexity tier.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from commit_wizard.analysis.complexity import ComplexityScore, ComplexityTier

if TYPE_CHECKING:
    from commit_wizard.config.settings import ModelSettings, PipelineConfig


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class ExternalProviderError(Exception):
    """Raised when the language model provider cannot produce a reply."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def select_model(score: ComplexityScore, models: "ModelSettings") -> str:
    """Return the model for a complexity tier.

    Simple change sets use the fast model; moderate and complex ones the
    thinking model. An explicit override wins over both.
    """
    if models.override:
        return models.override
    if score.tier is ComplexityTier.SIMPLE:
        return models.fast
    return models.thinking


def create_client(config: "PipelineConfig"):
    """Build the client named by ``config.provider``.

    Raises
    ------
    ExternalProviderError
        If the provider is unknown or OpenRouter has no API key.
    """
    from commit_wizard.llm.ollama_client import OllamaClient
    from commit_wizard.llm.openrouter_client import OpenRouterClient

    settings = config.provider
    if settings.name == "openrouter":
        if not settings.api_key:
            raise ExternalProviderError(
                "OPENROUTER_API_KEY is not set; export it or add 'api_key' to the configuration"
            )
        logger.debug("Using OpenRouter at %s", settings.base_url)
        return OpenRouterClient(
            api_key=settings.api_key,
            model=config.models.fast,
            base_url=settings.base_url,
            request_timeout=settings.request_timeout,
            max_tokens=settings.max_tokens,
        )
    if settings.name == "ollama":
        logger.debug("Using Ollama at %s:%s", settings.base_url, settings.port)
        return OllamaClient(
            base_url=settings.base_url,
            port=settings.port,
            model=config.models.fast,
            request_timeout=settings.request_timeout,
            max_tokens=settings.max_tokens,
        )
    raise ExternalProviderError(f"unknown provider {settings.name!r}")
