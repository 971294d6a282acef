"""
Configuration loader for commit_wizard.

The tool reads an optional JSON file named ``config.json`` from the
``~/.commit_wizard/`` directory in the user's home directory. A missing
file is not an error: every key has a default. The environment
variables ``OPENROUTER_API_KEY`` and ``OPENROUTER_MODEL`` override the
file so that the tool can run with no file at all.

A file that is not valid JSON, or that holds values of the wrong type,
raises :class:`ConfigError`.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


PROVIDERS = ("openrouter", "ollama")
CONFIG_FILE_NAME = "config.json"

_STRING_KEYS = ("api_key", "base_url", "editor")
_NUMBER_KEYS = ("request_timeout", "scope_repair_confidence")
_INT_KEYS = ("port", "max_tokens", "max_regenerations", "max_description_length")
_ANALYSIS_KEYS = ("max_file_size_kb", "max_file_count", "max_total_diff_lines")
_MODEL_KEYS = ("fast", "thinking")


class ConfigError(Exception):
    """Raised when the configuration file is malformed or invalid."""

    pass


def get_config_directory() -> Path:
    """Return ``~/.commit_wizard``, where the configuration file lives."""
    return Path.home() / ".commit_wizard"


def get_config_path() -> Path:
    return get_config_directory() / CONFIG_FILE_NAME


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_types(data: Mapping[str, Any]) -> None:
    provider = data.get("provider")
    if provider is not None and provider not in PROVIDERS:
        raise ConfigError(f"'provider' must be one of {', '.join(PROVIDERS)}, got {provider!r}")
    for key in _STRING_KEYS:
        if key in data and data[key] is not None and not isinstance(data[key], str):
            raise ConfigError(f"'{key}' must be a string")
    for key in _NUMBER_KEYS:
        if key in data and (isinstance(data[key], bool) or not isinstance(data[key], (int, float))):
            raise ConfigError(f"'{key}' must be a number")
    for key in _INT_KEYS:
        if key in data and data[key] is not None and not _is_int(data[key]):
            raise ConfigError(f"'{key}' must be an integer")

    models = data.get("models", {})
    if not isinstance(models, dict):
        raise ConfigError("'models' must be an object")
    for key, value in models.items():
        if key not in _MODEL_KEYS:
            raise ConfigError(f"unknown model tier 'models.{key}'")
        if not isinstance(value, str) or not value:
            raise ConfigError(f"'models.{key}' must be a non-empty string")

    analysis = data.get("analysis", {})
    if not isinstance(analysis, dict):
        raise ConfigError("'analysis' must be an object")
    for key, value in analysis.items():
        if key not in _ANALYSIS_KEYS:
            raise ConfigError(f"unknown analysis setting 'analysis.{key}'")
        if not _is_int(value) or value <= 0:
            raise ConfigError(f"'analysis.{key}' must be a positive integer")


def apply_environment(data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Overlay ``OPENROUTER_API_KEY`` and ``OPENROUTER_MODEL`` onto ``data``.

    A key in the environment selects the OpenRouter provider unless the
    file names a provider explicitly. A model in the environment is used
    for both tiers.
    """
    environ = os.environ if environ is None else environ
    result = dict(data)
    api_key = environ.get("OPENROUTER_API_KEY")
    if api_key:
        result["api_key"] = api_key
        result.setdefault("provider", "openrouter")
    model = environ.get("OPENROUTER_MODEL")
    if model:
        result["models"] = {"fast": model, "thinking": model}
    return result


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the user configuration and apply environment overrides.

    Parameters
    ----------
    config_path : Path, optional
        Explicit file to read. Defaults to ``~/.commit_wizard/config.json``.

    Returns
    -------
    Dict[str, Any]
        The validated configuration. Keys that are absent take their
        defaults in :func:`commit_wizard.config.settings.build_pipeline_config`.

    Raises
    ------
    ConfigError
        If the file cannot be read, is not a JSON object or has fields
        of the wrong type.
    """
    path = config_path or get_config_path()
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            content = path.read_text(encoding="utf-8")
            loaded = json.loads(content)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to read or parse configuration file: %s", exc)
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path} must contain a JSON object")
        data = loaded
        logger.debug("Loaded configuration from: %s", path)
    else:
        logger.debug("No configuration file at %s; using defaults", path)

    _check_types(data)
    data = apply_environment(data)
    redacted = {key: ("***" if key == "api_key" else value) for key, value in data.items()}
    logger.debug("Configuration data: %s", redacted)
    return data
