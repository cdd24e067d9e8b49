"""Model client abstractions for EyeCare Insights.

The agent talks to language models through this layer so that the
question/parsing logic does not depend on a specific backend. The only
backend is :class:`PerplexityClient`, which calls the Perplexity
chat-completions endpoint.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from .errors import ConfigurationError, InvalidAPIKeyError, RequestFailedError

logger = logging.getLogger(__name__)

PERPLEXITY_API_URL = "https://api.perplexity.ai/chat/completions"
DEFAULT_MODEL = "llama-3.1-sonar-small-128k-online"
API_KEY_ENV_VAR = "PERPLEXITY_API_KEY"

NO_RESPONSE_PLACEHOLDER = "No response received"

TRUSTED_DOMAINS = ["pubmed.ncbi.nlm.nih.gov", "aao.org", "nei.nih.gov", "who.int"]

DEFAULT_GENERATION: Dict[str, Any] = {
    "max_tokens": 1000,
    "temperature": 0.2,
    "top_p": 0.9,
}

INVALID_KEY_FORMAT_MESSAGE = (
    "Invalid API key format. Keys should start with 'pplx-' followed by alphanumeric characters."
)

_API_KEY_RE = re.compile(r"pplx-[A-Za-z0-9]{40,}")


def validate_api_key(api_key: Any) -> bool:
    """Return True if ``api_key`` looks like a Perplexity key (``pplx-`` + 40+ alnum)."""
    if not isinstance(api_key, str):
        return False
    return _API_KEY_RE.fullmatch(api_key) is not None


class ModelClient(ABC):
    """Abstract base class for model clients."""

    @abstractmethod
    def generate(self, messages: List[Dict[str, str]], *, generation: Optional[Dict[str, Any]] = None) -> str:
        """Generate a reply given a ChatML-like list of messages."""


class PerplexityClient(ModelClient):
    """HTTP client for the Perplexity chat-completions API.

    One call to :meth:`generate` issues exactly one POST request. There is no
    retry, and no timeout unless ``timeout`` is given.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = PERPLEXITY_API_URL,
        model: str = DEFAULT_MODEL,
        timeout: float | None = None,
    ) -> None:
        key = (api_key or "").strip() or (os.environ.get(API_KEY_ENV_VAR) or "").strip()
        if not key:
            raise ConfigurationError("Perplexity API key is required. Please provide your API key.")
        self.api_key = key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout

    def update_api_key(self, api_key: str) -> None:
        self.api_key = api_key

    def build_payload(
        self, messages: List[Dict[str, str]], generation: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        payload.update(DEFAULT_GENERATION)
        if generation:
            payload.update(generation)
        payload["return_citations"] = True
        payload["search_domain_filter"] = list(TRUSTED_DOMAINS)
        payload["search_recency_filter"] = "month"
        return payload

    def generate(self, messages: List[Dict[str, str]], *, generation: Optional[Dict[str, Any]] = None) -> str:
        if not self.api_key:
            raise ConfigurationError("API key is required. Please configure your Perplexity API key.")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        response = requests.post(
            self.base_url,
            json=self.build_payload(messages, generation),
            headers=headers,
            timeout=self.timeout,
        )

        if response.status_code == 401:
            raise InvalidAPIKeyError("Invalid API key. Please check your Perplexity API key.")
        if not 200 <= response.status_code < 300:
            raise RequestFailedError(response.status_code)

        data = response.json()
        content = _first_choice_content(data)
        if content is None:
            logger.debug("Perplexity response had no message content")
            return NO_RESPONSE_PLACEHOLDER
        return content


def _first_choice_content(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str) or not content:
        return None
    return content
