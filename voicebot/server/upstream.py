"""
Generative model client and the retrying invoker that guards it.

GeminiClient talks to the Generative Language REST API with httpx.
RetryingInvoker wraps any ``generate(prompt)`` coroutine with a small,
fixed retry budget for quota / rate-limit failures.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from ..config import UpstreamConfig
from ..errors import UpstreamError, UpstreamRateLimited

logger = logging.getLogger(__name__)

Generate = Callable[[str], Awaitable[str]]


class GeminiClient:
    """
    Async client for the ``generateContent`` endpoint.
    Returns the concatenated text of the first candidate.
    """

    def __init__(self, config: UpstreamConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        """Create the HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={
                "x-goog-api-key": self.config.api_key,
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self.config.timeout, connect=10.0),
            transport=self._transport,
        )
        logger.info("Upstream client initialized (model=%s)", self.config.model)

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the generated text."""
        if not self._client:
            raise RuntimeError("Upstream client not initialized")
        if not self.config.api_key:
            logger.warning("No GENAI_API_KEY configured, returning placeholder")
            return "[Model not configured] I heard your question but cannot answer yet."

        payload = {"contents": [{"parts": [{"text": prompt}]}]}

        try:
            response = await self._client.post(
                f"/models/{self.config.model}:generateContent", json=payload
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise UpstreamError(
                f"HTTP {status}: {self._error_message(e.response)}", status_code=status
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"{type(e).__name__}: {e}") from e

        try:
            data = response.json()
            parts = data["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError) as e:
            raise UpstreamError(f"Malformed upstream response: {e}") from e

        text = "".join(part.get("text", "") for part in parts)
        logger.info("Upstream response completed (%d chars)", len(text))
        return text

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull the error message out of a Google-style error body."""
        try:
            error = response.json().get("error", {})
            return f"{error.get('status', '')} {error.get('message', '')}".strip()
        except (ValueError, AttributeError):
            return response.text[:200]


class RetryingInvoker:
    """
    Calls the upstream with a bounded retry-with-delay loop.

    Only retryable failures (quota / 429) consume the budget and wait;
    anything else propagates on the first occurrence.
    """

    def __init__(
        self,
        generate: Generate,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._generate = generate
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    @classmethod
    def from_config(cls, generate: Generate, config: UpstreamConfig) -> "RetryingInvoker":
        return cls(generate, max_attempts=config.max_attempts, retry_delay=config.retry_delay)

    async def invoke(self, prompt: str) -> str:
        """Return the upstream answer or raise UpstreamError / UpstreamRateLimited."""
        remaining = self.max_attempts
        while True:
            try:
                return await self._generate(prompt)
            except UpstreamError as e:
                if not e.retryable:
                    raise
                remaining -= 1
                if remaining <= 0:
                    logger.error("Upstream rate limited, %d attempts exhausted", self.max_attempts)
                    raise UpstreamRateLimited(self.max_attempts) from e
                logger.warning(
                    "Upstream rate limited (%s), retrying in %.1fs (%d left)",
                    e, self.retry_delay, remaining,
                )
                await self._sleep(self.retry_delay)
