"""Error taxonomy for the analysis pipeline.

Adapters and the dispatcher raise provider-tagged errors; the service
classifies them into an ``ErrorKind`` and re-raises a single
``AnalysisFailedError`` carrying a summarized, user-facing message.
"""

from enum import Enum
from http import HTTPStatus


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    COOLDOWN = "cooldown"
    TIMEOUT = "timeout"
    AUTH = "auth"
    QUOTA = "quota"
    NETWORK = "network"
    GENERIC = "generic"


class UnknownProviderError(ValueError):
    """Lookup of a provider that is not in the registry."""


class AnalysisError(Exception):
    """Base class for failures surfaced by ``AnalysisService``."""

    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputValidationError(AnalysisError):
    """Rejected input. Raised before any network call."""

    kind = ErrorKind.VALIDATION


class CooldownError(AnalysisError):
    """Request submitted inside the cooldown window."""

    kind = ErrorKind.COOLDOWN

    def __init__(self, remaining_seconds: float) -> None:
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"Please wait {remaining_seconds:.1f}s before sending another request."
        )


class AnalysisFailedError(AnalysisError):
    """A classified dispatch failure.

    Attributes:
        kind: Classified failure category.
        provider: Provider the request was sent to.
    """

    def __init__(self, kind: ErrorKind, message: str, provider: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.provider = provider


class ProviderError(Exception):
    """Adapter or dispatch failure tagged with the backend that produced it.

    Attributes:
        provider: Registry name of the backend.
        status_code: HTTP status code when the backend answered, else None.
        network: True when the request never got an HTTP answer.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        network: bool = False,
    ) -> None:
        super().__init__(f"{provider.upper()} API Error: {message}")
        self.provider = provider
        self.message = message
        self.status_code = status_code
        self.network = network


class DispatchTimeoutError(TimeoutError):
    """No adapter settled within the dispatch budget."""

    def __init__(self, provider: str, timeout: float) -> None:
        super().__init__(f"{provider} request timed out after {timeout:g}s")
        self.provider = provider
        self.timeout = timeout


_AUTH_STATUSES = {HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN}
_AUTH_TOKENS = ("api key", "api_key", "authentication", "unauthorized", "invalid key")
_QUOTA_TOKENS = ("quota", "rate limit", "rate_limit", "too many requests", "429")
_NETWORK_TOKENS = ("network", "connection", "enotfound", "dns")


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a dispatch failure to the category shown to the user."""
    if isinstance(exc, (DispatchTimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT

    status_code = getattr(exc, "status_code", None)
    if status_code in _AUTH_STATUSES:
        return ErrorKind.AUTH
    if status_code == HTTPStatus.TOO_MANY_REQUESTS:
        return ErrorKind.QUOTA
    if isinstance(exc, ProviderError) and exc.network:
        return ErrorKind.NETWORK

    text = str(exc).lower()
    if any(token in text for token in _QUOTA_TOKENS):
        return ErrorKind.QUOTA
    if any(token in text for token in _AUTH_TOKENS):
        return ErrorKind.AUTH
    if "timeout" in text or "timed out" in text:
        return ErrorKind.TIMEOUT
    if any(token in text for token in _NETWORK_TOKENS):
        return ErrorKind.NETWORK
    return ErrorKind.GENERIC


def user_message(kind: ErrorKind, provider: str) -> str:
    """Summarized message for a classified failure. Never includes backend text."""
    if kind == ErrorKind.TIMEOUT:
        return "Request timed out. Check your connection and try again."
    if kind == ErrorKind.AUTH:
        return f"Invalid {provider} API key. Please check your Settings."
    if kind == ErrorKind.QUOTA:
        return (
            f"{provider.upper()} quota exceeded. "
            "Try another provider or wait a few minutes."
        )
    if kind == ErrorKind.NETWORK:
        return "Network error. Check your internet connection."
    return "Analysis failed. Please try again."
