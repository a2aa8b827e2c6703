"""Error taxonomy shared by the summaries feature."""
from __future__ import annotations

from typing import Optional


class ValidationError(ValueError):
    """Raised when local input is rejected before any remote call."""


class TooShortError(ValidationError):
    """Custom instructions are shorter than the minimum length."""


class TooLongError(ValidationError):
    """Custom instructions exceed the maximum length."""


class ProhibitedPatternError(ValidationError):
    """Custom instructions contain a denylisted phrase."""


class DocumentTooLargeError(ValidationError):
    """The selected document exceeds the upload size cap."""


class UnsupportedDocumentError(ValidationError):
    """The selected document has an extension we cannot process."""


class StateError(RuntimeError):
    """Raised when an operation is invoked in an invalid session state."""


class NoSummaryToRefineError(StateError):
    """Refinement requested before any summary exists."""


class NavigationError(StateError):
    """Base error for version cursor moves."""


class AtBoundaryError(NavigationError):
    """Undo at the first version or redo at the latest version."""


class OutOfRangeError(NavigationError):
    """Jump target is outside the version history."""


class RemoteError(RuntimeError):
    """Base error raised for generative API failures."""

    kind = "remote"
    retryable = False

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.attempts: Optional[int] = None


class AuthenticationError(RemoteError):
    """Raised when the API key is missing or rejected."""

    kind = "authentication"


class RateLimitError(RemoteError):
    """Raised when the provider reports a rate limit."""

    kind = "rate_limit"
    retryable = True


class TransientError(RemoteError):
    """Raised for overload, timeout and connection failures."""

    kind = "transient"
    retryable = True


class ClientConfigurationError(RemoteError):
    """Raised when the API receives or returns an unexpected payload."""

    kind = "configuration"


class RetryExhaustedError(RemoteError):
    """Raised after the retry budget is spent; wraps the last failure."""

    kind = "exhausted"

    def __init__(self, last_error: RemoteError, attempts: int) -> None:
        noun = "attempt" if attempts == 1 else "attempts"
        super().__init__(f"{last_error} (after {attempts} {noun})", status_code=last_error.status_code)
        self.last_error = last_error
        self.attempts = attempts
