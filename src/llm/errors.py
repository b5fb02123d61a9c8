# src/llm/errors.py — v1
"""LLM error taxonomy and classification.

Adapters raise the structured subclasses below so the orchestrator can
branch on ``kind``. Errors coming from elsewhere (third-party SDKs, user
supplied workers) are classified by message as a fallback: any text
containing "429", "rate limit" or "too many requests" (case-insensitive)
is a rate limit.
"""

from __future__ import annotations

from enum import Enum

_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")


class ErrorKind(str, Enum):
    """How the orchestrator should react to a task failure."""

    RATE_LIMIT = "rate_limit"
    INVALID_CREDENTIAL = "invalid_credential"
    MALFORMED_RESPONSE = "malformed_response"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"

    @property
    def recoverable(self) -> bool:
        return self is ErrorKind.RATE_LIMIT


class LLMError(Exception):
    """Base class for errors raised by LLM adapters and the extraction worker."""

    kind: ErrorKind = ErrorKind.UNKNOWN


class RateLimitError(LLMError):
    """Provider throttled the request (HTTP 429 or equivalent)."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str = "429 - Rate limit exceeded.") -> None:
        super().__init__(message)


class InvalidCredentialError(LLMError):
    """The API key was rejected."""

    kind = ErrorKind.INVALID_CREDENTIAL


class MalformedResponseError(LLMError):
    """The model answered with something that is not the expected JSON."""

    kind = ErrorKind.MALFORMED_RESPONSE


class UnsupportedProviderError(LLMError, ValueError):
    """Raised when a provider is not registered."""

    kind = ErrorKind.UNSUPPORTED


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an exception into an ErrorKind.

    Structured ``kind`` attributes win; message matching is the
    compatibility path for errors that carry none.
    """
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind

    msg = str(error).lower()
    if any(marker in msg for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMIT
    if "api key not valid" in msg or "invalid api key" in msg:
        return ErrorKind.INVALID_CREDENTIAL
    return ErrorKind.UNKNOWN


def normalize_provider_error(error: Exception) -> Exception:
    """Translate a provider SDK exception into the LLMError hierarchy.

    The provider's message is kept on the translated error. Returns the
    original exception when no mapping applies.
    """
    if isinstance(error, LLMError):
        return error
    status = getattr(error, "status_code", None) or getattr(error, "code", None)
    if status == 429:
        kind = ErrorKind.RATE_LIMIT
    elif status in (401, 403):
        kind = ErrorKind.INVALID_CREDENTIAL
    else:
        kind = classify_error(error)
    reason = str(error).strip()

    if kind is ErrorKind.RATE_LIMIT:
        return RateLimitError(reason) if reason else RateLimitError()
    if kind is ErrorKind.INVALID_CREDENTIAL:
        message = "The provided API key is not valid."
        return InvalidCredentialError(f"{message} {reason}" if reason else message)
    return error
