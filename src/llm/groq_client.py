"""
Groq chat completions client.

Thin async client for the OpenAI-compatible Groq endpoint. Every call returns
a CompletionResult; transport errors, timeouts and malformed bodies are
reported in the result instead of raised.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

import httpx
from loguru import logger

from config.settings import GroqSettings

groq_log = logger.bind(module="Groq")


@dataclass
class CompletionResult:
    """Outcome of one completion call."""

    content: Optional[str] = None
    status_code: Optional[int] = None
    headers: dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True if the provider returned non-empty content."""
        return self.error is None and bool(self.content)


class GroqClient:
    """Async Groq client over httpx."""

    def __init__(self, settings: GroqSettings, http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize Groq client.

        Args:
            settings: Groq settings (API key, model, endpoint)
            http_client: Optional pre-built client (tests pass a MockTransport client)
        """
        self.settings = settings
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def enabled(self) -> bool:
        """Whether calls can be made at all."""
        return self.settings.enabled

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout)
        return self._client

    async def complete(self, system: str, user: str, timeout: Optional[float] = None) -> CompletionResult:
        """
        Request a chat completion.

        Args:
            system: System message
            user: User message
            timeout: Deadline in seconds (defaults to settings.timeout)

        Returns:
            CompletionResult with content on success, error otherwise
        """
        if not self.enabled:
            return CompletionResult(error="disabled")

        timeout = self.settings.timeout if timeout is None else timeout
        payload = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.api_key}",
        }

        try:
            response = await asyncio.wait_for(
                self._get_client().post(self.settings.api_url, json=payload, headers=headers, timeout=timeout),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            groq_log.debug(f"Groq request timed out after {timeout}s")
            return CompletionResult(error="timeout")
        except httpx.HTTPError as e:
            groq_log.debug(f"Groq request failed: {e}")
            return CompletionResult(error=f"transport: {e}")

        result_headers = dict(response.headers)
        if response.status_code != 200:
            if response.status_code == 429:
                groq_log.warning("Groq rate limit exceeded (429)")
            else:
                groq_log.debug(f"Groq API error: status={response.status_code}")
            return CompletionResult(
                status_code=response.status_code,
                headers=result_headers,
                error=f"status {response.status_code}",
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            groq_log.warning("Groq API returned invalid response format")
            return CompletionResult(status_code=200, headers=result_headers, error="malformed response")

        if not isinstance(content, str) or not content.strip():
            return CompletionResult(status_code=200, headers=result_headers, error="empty response")

        return CompletionResult(content=content.strip(), status_code=200, headers=result_headers)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
