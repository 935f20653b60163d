"""Error taxonomy and result types shared by the generative-AI layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """User-facing classification of a failed flow."""

    NETWORK_FAILURE = "network_failure"
    RATE_LIMITED = "rate_limited"
    HTTP_ERROR = "http_error"
    MALFORMED_RESPONSE = "malformed_response"
    AUDIO_DECODE_FAILURE = "audio_decode_failure"
    GENERATION_FAILED = "generation_failed"


class LLMError(Exception):
    """Base exception for generative-AI errors."""

    kind: ErrorKind = ErrorKind.HTTP_ERROR
    retryable: bool = False

    def __init__(self, message: str, *, status: Optional[int] = None, attempts: int = 1):
        super().__init__(message)
        self.status = status
        self.attempts = attempts


class CallError(LLMError):
    """A request to the remote endpoint failed."""

    pass


class NetworkFailure(CallError):
    """Transport-level failure (connection refused, timeout, reset)."""

    kind = ErrorKind.NETWORK_FAILURE
    retryable = True


class RateLimited(CallError):
    """Server answered HTTP 429."""

    kind = ErrorKind.RATE_LIMITED
    retryable = True


class HttpError(CallError):
    """Server answered a non-2xx status other than 429."""

    kind = ErrorKind.HTTP_ERROR


class RetriesExhausted(CallError):
    """Retry budget used up; ``cause`` is the last retryable failure."""

    def __init__(self, cause: CallError, attempts: int):
        super().__init__(
            f"Fetch failed after {attempts - 1} retries: {cause}",
            status=cause.status,
            attempts=attempts,
        )
        self.cause = cause
        self.kind = cause.kind


class MalformedResponse(LLMError):
    """Response lacked the expected text or audio fields."""

    kind = ErrorKind.MALFORMED_RESPONSE


class AudioDecodeFailure(LLMError):
    """Inline audio payload could not be decoded into a playable clip."""

    kind = ErrorKind.AUDIO_DECODE_FAILURE


@dataclass(frozen=True)
class Citation:
    """A grounding attribution returned alongside generated text."""

    uri: str
    title: str


@dataclass
class TextResult:
    """Generated text plus any grounding citations."""

    text: str
    model: str
    citations: list[Citation] = field(default_factory=list)


@dataclass
class SpeechResult:
    """Base64 PCM audio returned by the speech endpoint."""

    data: str
    mime_type: str
    voice_name: str
    model: str
