"""Failure types for the resilience and batch contexts.

Every upstream failure is normalized into exactly one of five
ClassifiedError subclasses. Each subclass carries an ErrorKind tag, and
RETRY_ACTIONS maps every kind to what the resilient caller does next.
"""

import enum
from typing import Dict, Optional

DEFAULT_RATE_LIMIT_RETRY_AFTER = 60.0  # Seconds, used when upstream gives none


class ErrorKind(enum.Enum):
    RATE_LIMITED = "rate_limited"
    AUTH_FAILURE = "auth_failure"
    TRANSIENT = "transient"
    VALIDATION = "validation"
    FATAL = "fatal"


class RetryAction(enum.Enum):
    """What the resilient caller does after a failed attempt."""
    COOLDOWN_AND_WAIT = "cooldown_and_wait"  # Cool the credential down, then wait
    ROTATE = "rotate"                        # Long cooldown, next attempt immediately
    WAIT = "wait"                            # Wait, credential untouched
    ABORT = "abort"                          # Propagate at once


RETRY_ACTIONS: Dict[ErrorKind, RetryAction] = {
    ErrorKind.RATE_LIMITED: RetryAction.COOLDOWN_AND_WAIT,
    ErrorKind.AUTH_FAILURE: RetryAction.ROTATE,
    ErrorKind.TRANSIENT: RetryAction.WAIT,
    ErrorKind.VALIDATION: RetryAction.ABORT,
    ErrorKind.FATAL: RetryAction.ABORT,
}


class ClassifiedError(Exception):
    """Base class for a normalized upstream failure.

    Only the five subclasses below are ever instantiated.
    """
    kind: ErrorKind

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        # Filled in by the resilient caller when the error leaves it
        self.attempts: int = 0
        self.pool_exhausted: bool = False

    @property
    def retry_after(self) -> Optional[float]:
        return None

    @property
    def action(self) -> RetryAction:
        return RETRY_ACTIONS[self.kind]

    @property
    def retryable(self) -> bool:
        return self.action is not RetryAction.ABORT

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code})"


class RateLimited(ClassifiedError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        status_code: Optional[int] = None,
        retry_after: Optional[float] = DEFAULT_RATE_LIMIT_RETRY_AFTER,
    ):
        super().__init__(message, status_code)
        self._retry_after = retry_after

    @property
    def retry_after(self) -> Optional[float]:
        return self._retry_after


class AuthFailure(ClassifiedError):
    kind = ErrorKind.AUTH_FAILURE


class Transient(ClassifiedError):
    kind = ErrorKind.TRANSIENT


class ValidationFailure(ClassifiedError):
    """The request or its response is defective; never retried."""
    kind = ErrorKind.VALIDATION


class FatalFailure(ClassifiedError):
    """Unknown cause; never retried."""
    kind = ErrorKind.FATAL


# --- Raw and configuration errors ---

class UpstreamError(Exception):
    """A raw failure from an upstream adapter, before classification.

    Adapters raise this with whatever the SDK exposed: an HTTP-like status,
    a message, and optionally a server-provided retry-after in seconds.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class CredentialPoolError(ValueError):
    """Raised when a credential pool cannot be built."""


class LeadFileError(ValueError):
    """Raised when a lead file cannot be read or holds no usable records."""


class RetryBudgetExhausted(Exception):
    """Raised when a run can no longer wait out upstream failures.

    Either a batch used up its outer retries, or the next wait (inside the
    caller or between outer retries) would push the run past its total
    wait budget. `last_error` is the failure that was being waited out.
    """

    def __init__(
        self,
        message: str,
        last_error: Optional[ClassifiedError] = None,
        outer_retries: int = 0,
        waited_s: float = 0.0,
    ):
        super().__init__(message)
        self.last_error = last_error
        self.outer_retries = outer_retries
        self.waited_s = waited_s
