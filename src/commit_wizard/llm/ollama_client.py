"""
Client for a local Ollama server.

The client posts a single non-streaming request to the ``/api/generate``
endpoint and returns the reply with any reasoning blocks removed. Every
failure (connection errors, timeouts, non-200 replies, undecodable or
unexpected payloads) is raised as
:class:`~commit_wizard.llm.provider.ExternalProviderError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from commit_wizard.llm.provider import ExternalProviderError
from commit_wizard.message.validator import strip_thinking_tags


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass
class OllamaClient:
    """Client for an Ollama server.

    Parameters
    ----------
    base_url : str
        Base URL of the server, e.g. ``"http://localhost"``.
    port : int
        Port of the server, e.g. ``11434``.
    model : str
        Default model, used when :meth:`generate` is not given one.
    request_timeout : float, optional
        Timeout in seconds for the HTTP request.
    max_tokens : int, optional
        Passed to the server as ``options.num_predict``.
    """

    base_url: str
    port: Optional[int]
    model: str
    request_timeout: float = 60.0
    max_tokens: Optional[int] = None

    def _endpoint(self) -> str:
        base = self.base_url.rstrip("/")
        if self.port:
            return f"{base}:{self.port}/api/generate"
        return f"{base}/api/generate"

    def generate(self, prompt: str, model: Optional[str] = None, system: Optional[str] = None) -> str:
        """Generate a completion.

        Parameters
        ----------
        prompt : str
            The user prompt.
        model : str, optional
            Model for this call; defaults to :attr:`model`.
        system : str, optional
            System prompt sent alongside the user prompt.

        Returns
        -------
        str
            The reply text without reasoning blocks.

        Raises
        ------
        ExternalProviderError
            If the request fails or the server reply is unusable.
        """
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "prompt": prompt,
            "stream": False,
        }
        if system:
            payload["system"] = system
        if self.max_tokens is not None:
            payload["options"] = {"num_predict": self.max_tokens}
        url = self._endpoint()
        logger.debug("Sending request to Ollama at %s with model %s", url, payload["model"])
        try:
            response = requests.post(url, json=payload, timeout=self.request_timeout)
        except requests.RequestException as exc:
            logger.error("Failed to connect to Ollama: %s", exc)
            raise ExternalProviderError(f"failed to reach Ollama at {url}: {exc}") from exc
        if response.status_code != 200:
            logger.error("Ollama returned non-200 status %s: %s", response.status_code, response.text)
            raise ExternalProviderError(
                f"Ollama returned status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Failed to parse Ollama response: %s", exc)
            raise ExternalProviderError("failed to parse Ollama response") from exc

        # /api/generate answers with 'response'; /api/chat style replies
        # carry the text under 'message.content'.
        if isinstance(data, dict) and isinstance(data.get("response"), str):
            text = data["response"]
        elif isinstance(data, dict) and isinstance(data.get("message"), dict):
            text = data["message"].get("content") or ""
        else:
            raise ExternalProviderError("unexpected response structure from Ollama")
        logger.debug("Raw Ollama reply: %s", text)
        return strip_thinking_tags(text)
