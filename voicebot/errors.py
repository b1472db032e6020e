"""
Error taxonomy shared by the voice client and the API server.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """How a failed answer request is reported to the voice session."""
    VALIDATION = "validation"
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"


class RecognitionErrorKind(str, Enum):
    """Speech recognition failure causes."""
    NO_SPEECH = "no-speech"
    PERMISSION_DENIED = "not-allowed"
    NETWORK = "network"
    ABORTED = "aborted"
    OTHER = "other"


class VoiceBotError(Exception):
    """Base class for all voice bot errors."""


class ValidationError(VoiceBotError):
    """Input has the wrong shape or length. Never sent upstream."""


class CapabilityUnsupported(VoiceBotError):
    """The platform lacks speech recognition or synthesis."""


class RecognitionError(VoiceBotError):
    """Speech capture failed. Recoverable: the session stays usable."""

    def __init__(self, kind: RecognitionErrorKind, detail: str = ""):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail


class SynthesisError(VoiceBotError):
    """Speech playback failed."""


class AnswerRequestError(VoiceBotError):
    """The answer request did not produce a response."""

    def __init__(self, kind: ErrorKind, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.status_code = status_code


class RateLimitExceeded(VoiceBotError):
    """A caller exceeded its request allowance for the current window."""

    def __init__(self, caller: str, retry_after: float):
        super().__init__(f"Rate limit exceeded for {caller}")
        self.caller = caller
        self.retry_after = retry_after


class UpstreamError(VoiceBotError):
    """The generative model backend returned an error."""

    _RETRYABLE_MARKERS = ("429", "quota", "resource_exhausted")

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """True for quota / rate-limit signals that are worth retrying."""
        if self.status_code == 429:
            return True
        text = str(self).lower()
        return any(marker in text for marker in self._RETRYABLE_MARKERS)


class UpstreamRateLimited(UpstreamError):
    """Retries were exhausted while the upstream kept rate limiting."""

    def __init__(self, attempts: int):
        super().__init__(f"Upstream still rate limited after {attempts} attempts", 429)
        self.attempts = attempts
