"""
Immutable pipeline configuration.

The tuning constants of each pipeline stage live beside the stage
(:class:`DetectorSettings`, :class:`ScoringSettings`,
:class:`ValidatorSettings`); this module gathers them together with the
model and provider settings. A :class:`PipelineConfig` is built once per run from
the user configuration (see :mod:`commit_wizard.config.loader`) and
command line overrides, then passed explicitly to each component. There
is no module-level mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

from commit_wizard.analysis.complexity import ScoringSettings
from commit_wizard.analysis.models import AnalysisBudget
from commit_wizard.analysis.pattern_detector import DetectorSettings
from commit_wizard.config.loader import ConfigError
from commit_wizard.message.validator import ValidatorSettings


DEFAULT_OLLAMA_URL = "http://localhost"
DEFAULT_OLLAMA_PORT = 11434
DEFAULT_OPENROUTER_URL = "https://openrouter.ai/api/v1"


@dataclass(frozen=True)
class ModelSettings:
    """Model identifiers per complexity tier."""

    fast: str = "llama3.2"
    thinking: str = "llama3.1"
    override: Optional[str] = None


@dataclass(frozen=True)
class ProviderSettings:
    """Connection settings for the language model provider."""

    name: str = "ollama"
    base_url: str = DEFAULT_OLLAMA_URL
    port: Optional[int] = DEFAULT_OLLAMA_PORT
    api_key: Optional[str] = None
    request_timeout: float = 60.0
    max_tokens: Optional[int] = 400


@dataclass(frozen=True)
class PipelineConfig:
    """Everything a single analysis run needs, threaded explicitly."""

    budget: AnalysisBudget = field(default_factory=AnalysisBudget)
    detector: DetectorSettings = field(default_factory=DetectorSettings)
    scoring: ScoringSettings = field(default_factory=ScoringSettings)
    validator: ValidatorSettings = field(default_factory=ValidatorSettings)
    models: ModelSettings = field(default_factory=ModelSettings)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    max_regenerations: int = 3
    editor: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_regenerations < 0:
            raise ValueError("max_regenerations must not be negative")


def build_pipeline_config(
    data: Optional[Mapping[str, Any]] = None,
    *,
    max_file_size_kb: Optional[int] = None,
    max_file_count: Optional[int] = None,
    max_total_diff_lines: Optional[int] = None,
    model: Optional[str] = None,
) -> PipelineConfig:
    """Build a :class:`PipelineConfig` from a loaded configuration mapping.

    Parameters
    ----------
    data : Mapping[str, Any], optional
        The dictionary returned by :func:`commit_wizard.config.loader.load_config`.
    max_file_size_kb, max_file_count, max_total_diff_lines : int, optional
        Command line overrides for the analysis budget.
    model : str, optional
        Force a single model for every tier.

    Returns
    -------
    PipelineConfig
        The frozen configuration for this run.

    Raises
    ------
    ConfigError
        If a budget value is not a positive integer.
    """
    data = data or {}
    analysis: Dict[str, Any] = dict(data.get("analysis") or {})
    for key, value in (
        ("max_file_size_kb", max_file_size_kb),
        ("max_file_count", max_file_count),
        ("max_total_diff_lines", max_total_diff_lines),
    ):
        if value is not None:
            analysis[key] = value
    try:
        budget = AnalysisBudget(**analysis)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid analysis budget: {exc}") from exc

    models_data = data.get("models") or {}
    defaults = ModelSettings()
    models = ModelSettings(
        fast=models_data.get("fast", defaults.fast),
        thinking=models_data.get("thinking", defaults.thinking),
        override=model,
    )

    provider_name = data.get("provider", "ollama")
    if provider_name == "openrouter":
        default_url, default_port = DEFAULT_OPENROUTER_URL, None
    else:
        default_url, default_port = DEFAULT_OLLAMA_URL, DEFAULT_OLLAMA_PORT
    provider = ProviderSettings(
        name=provider_name,
        base_url=data.get("base_url", default_url),
        port=data.get("port", default_port),
        api_key=data.get("api_key"),
        request_timeout=float(data.get("request_timeout", 60.0)),
        max_tokens=data.get("max_tokens", 400),
    )

    validator = ValidatorSettings()
    if "scope_repair_confidence" in data:
        validator = replace(validator, scope_repair_confidence=float(data["scope_repair_confidence"]))
    if "max_description_length" in data:
        validator = replace(validator, max_description_length=data["max_description_length"])

    try:
        return PipelineConfig(
            budget=budget,
            models=models,
            provider=provider,
            validator=validator,
            max_regenerations=int(data.get("max_regenerations", 3)),
            editor=data.get("editor"),
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


__all__ = [
    "AnalysisBudget",
    "DetectorSettings",
    "ModelSettings",
    "PipelineConfig",
    "ProviderSettings",
    "ScoringSettings",
    "ValidatorSettings",
    "build_pipeline_config",
]
