"""
Generative Analysis Service - capability interface and OpenAI-compatible client.

The analysis tasks depend only on the single-method GenerativeAnalysisService
protocol:

    await service.complete(messages, options) -> Dict[str, Any]

where `messages` is a list of {"role", "content"} dicts and the result is the
parsed JSON object returned by the model. Any provider can be substituted by
implementing that method.

OpenAIGenerativeService is the production implementation. It posts to a
chat-completions endpoint with JSON-object response mode and raises
GenerativeServiceError for every failure mode:
- transport errors and timeouts
- non-2xx status codes
- bodies without a message content
- content that is not JSON, or JSON that is not an object
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from profit_insights.core.config import Settings
from profit_insights.models import CompletionOptions


logger = logging.getLogger(__name__)


Message = Dict[str, str]


class GenerativeServiceError(Exception):
    """Raised when the generative service cannot produce a JSON object."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GenerativeAnalysisService(Protocol):
    """Black-box structured completion: messages in, JSON object out."""

    async def complete(self, messages: List[Message], options: CompletionOptions) -> Dict[str, Any]:
        ...


def parse_json_object(content: Any) -> Dict[str, Any]:
    """
    Parse a completion's text content into a JSON object.

    Raises:
        GenerativeServiceError: If content is not a string holding a JSON object.
    """
    if not isinstance(content, str):
        raise GenerativeServiceError("Completion returned no text content")
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise GenerativeServiceError(f"Completion is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise GenerativeServiceError(
            f"Completion JSON is a {type(parsed).__name__}, expected an object"
        )
    return parsed


class OpenAIGenerativeService:
    """
    Chat-completions client using httpx.

    Args:
        api_key: Bearer token. Without one every call fails with
            GenerativeServiceError, which the analysis tasks turn into
            empty results.
        base_url: Endpoint root, e.g. https://api.openai.com/v1.
        timeout: Per-request timeout in seconds.
        client: Optional preconfigured httpx.AsyncClient (tests pass one
            backed by httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._http = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIGenerativeService":
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.generative_timeout_seconds,
        )

    async def complete(self, messages: List[Message], options: CompletionOptions) -> Dict[str, Any]:
        if not self._api_key:
            raise GenerativeServiceError("No API key configured for the generative service")

        payload = {
            "model": options.model,
            "messages": messages,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._http.post(self._url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise GenerativeServiceError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise GenerativeServiceError(f"Connection error: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise GenerativeServiceError(
                f"Generative service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerativeServiceError(f"Unexpected completion body: {e}") from e

        return parse_json_object(content)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
