"""
Answer Request Client: sends one question to the voice bot API.
Never retries: backoff lives on the server, next to the quota-limited model.
"""

import logging
from typing import Optional

import httpx

from ..config import ClientConfig
from ..errors import AnswerRequestError, ErrorKind, ValidationError

logger = logging.getLogger(__name__)


def classify_status(status_code: int) -> ErrorKind:
    """Map a non-2xx HTTP status to an ErrorKind."""
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    if status_code == 400:
        return ErrorKind.VALIDATION
    return ErrorKind.NETWORK


class AnswerClient:
    """
    Async client for ``POST /api/ask`` using httpx.
    """

    def __init__(self, config: ClientConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        """Create the HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.config.api_url,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(self.config.timeout, connect=10.0),
            transport=self._transport,
        )
        logger.info("Answer client initialized (api=%s)", self.config.api_url)

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def validate(self, question: str) -> None:
        """Raise ValidationError for questions the server would reject."""
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Question must be a non-empty string")
        if len(question) > self.config.max_question_length:
            raise ValidationError(
                f"Question is too long (max {self.config.max_question_length} characters)"
            )

    async def ask(self, question: str) -> str:
        """
        Ask one question and return the answer text.

        Raises:
            ValidationError: the question was rejected locally, nothing was sent.
            AnswerRequestError: the request failed; ``kind`` says how.
        """
        self.validate(question)
        if not self._client:
            raise RuntimeError("Answer client not initialized")

        try:
            response = await self._client.post("/api/ask", json={"question": question})
        except httpx.HTTPError as e:
            logger.error("Answer request failed: %s: %s", type(e).__name__, e)
            raise AnswerRequestError(ErrorKind.SERVER_ERROR, str(e)) from e

        if response.is_error:
            kind = classify_status(response.status_code)
            message = self._error_message(response)
            logger.error("Answer request HTTP %d: %s", response.status_code, message)
            raise AnswerRequestError(kind, message, response.status_code)

        try:
            answer = response.json()["response"]
        except (ValueError, KeyError, TypeError) as e:
            raise AnswerRequestError(ErrorKind.NETWORK, f"Malformed response: {e}") from e
        if not isinstance(answer, str):
            raise AnswerRequestError(ErrorKind.NETWORK, "Malformed response: answer is not text")
        return answer

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return str(response.json().get("error", ""))
        except (ValueError, AttributeError):
            return response.text[:200]
