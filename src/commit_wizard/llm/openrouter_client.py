"""
Client for the OpenRouter chat completions API.

Requests carry a system and a user message and a low temperature so
the reply is stable across regenerations. Rate limiting (HTTP 429),
server errors and connection failures are retried with exponential
backoff; everything else fails at once with
:class:`~commit_wizard.llm.provider.ExternalProviderError`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from commit_wizard.llm.provider import ExternalProviderError
from commit_wizard.message.validator import strip_thinking_tags


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


OPENROUTER_URL = "https://openrouter.ai/api/v1"


@dataclass
class OpenRouterClient:
    """Client for OpenRouter.

    Parameters
    ----------
    api_key : str
        Bearer token (``OPENROUTER_API_KEY``).
    model : str
        Default model, used when :meth:`generate` is not given one.
    base_url : str, optional
        API root; ``/chat/completions`` is appended.
    request_timeout : float, optional
        Timeout in seconds for each HTTP request.
    max_tokens : int, optional
        Upper bound on the reply length.
    temperature : float, optional
        Sampling temperature.
    max_attempts : int, optional
        Attempts for retryable failures.
    retry_delay : float, optional
        Delay before the first retry; doubled after each attempt.
    """

    api_key: str
    model: str
    base_url: str = OPENROUTER_URL
    request_timeout: float = 30.0
    max_tokens: Optional[int] = 400
    temperature: float = 0.1
    max_attempts: int = 3
    retry_delay: float = 1.0

    def _endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, prompt: str, model: str, system: Optional[str]) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        return payload

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        url = self._endpoint()
        delay = self.retry_delay
        for attempt in range(1, self.max_attempts + 1):
            last = attempt == self.max_attempts
            try:
                response = requests.post(
                    url, headers=self._headers(), json=payload, timeout=self.request_timeout
                )
            except requests.RequestException as exc:
                if last:
                    logger.error("Failed to connect to OpenRouter: %s", exc)
                    raise ExternalProviderError(
                        f"failed to connect to OpenRouter after {self.max_attempts} attempts: {exc}"
                    ) from exc
                logger.warning("Network error: %s. Retrying in %.1fs", exc, delay)
            else:
                retryable = response.status_code == 429 or response.status_code >= 500
                if not retryable or last:
                    return response
                logger.warning(
                    "OpenRouter returned %s. Retrying in %.1fs", response.status_code, delay
                )
            time.sleep(delay)
            delay *= 2
        raise ExternalProviderError("OpenRouter request was not attempted")

    def generate(self, prompt: str, model: Optional[str] = None, system: Optional[str] = None) -> str:
        """Generate a completion.

        Parameters
        ----------
        prompt : str
            The user prompt.
        model : str, optional
            Model for this call; defaults to :attr:`model`.
        system : str, optional
            System prompt.

        Returns
        -------
        str
            ``choices[0].message.content`` without reasoning blocks.

        Raises
        ------
        ExternalProviderError
            On transport failures, non-200 replies or unexpected payloads.
        """
        model = model or self.model
        if not self.api_key:
            raise ExternalProviderError("OPENROUTER_API_KEY is not set")
        logger.debug("Sending request to OpenRouter with model %s", model)
        response = self._post(self._payload(prompt, model, system))
        if response.status_code != 200:
            detail = response.text
            logger.error("OpenRouter returned non-200 status %s: %s", response.status_code, detail)
            if response.status_code == 400 and "model" in detail.lower():
                raise ExternalProviderError(
                    f"invalid model {model!r}: {detail}", status_code=response.status_code
                )
            raise ExternalProviderError(
                f"OpenRouter returned status {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Failed to parse OpenRouter response: %s", exc)
            raise ExternalProviderError("failed to parse OpenRouter response") from exc
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ExternalProviderError("unexpected response structure from OpenRouter") from exc
        if not isinstance(text, str):
            raise ExternalProviderError("OpenRouter reply has no text content")
        logger.debug("Raw OpenRouter reply: %s", text)
        return strip_thinking_tags(text)
