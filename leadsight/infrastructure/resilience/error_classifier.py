"""Maps arbitrary upstream failures onto the five ClassifiedError kinds.

Each rule matches on the HTTP-like status or on message text, so SDK-wrapped
errors that only expose a string are still caught. First match wins:

1. 429 / "rate limit" / "quota"          -> RateLimited
2. 401, 403 / "api key" / "authentication" -> AuthFailure
3. 400 / "validation"                   -> ValidationFailure
4. 500-504 / "timeout" / "network"      -> Transient
5. anything else                        -> FatalFailure
"""

import logging
from typing import Any, Optional

from leadsight.domain.models.errors import (
    DEFAULT_RATE_LIMIT_RETRY_AFTER,
    AuthFailure,
    ClassifiedError,
    FatalFailure,
    RateLimited,
    Transient,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = {429}
AUTH_STATUS = {401, 403}
VALIDATION_STATUS = {400}
TRANSIENT_STATUS = {500, 502, 503, 504}

RATE_LIMIT_MARKERS = ("rate limit", "quota")
AUTH_MARKERS = ("api key", "authentication")
VALIDATION_MARKERS = ("validation",)
TRANSIENT_MARKERS = ("timeout", "network")


def _status_code(raw: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(raw, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _parse_seconds(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def _retry_after(raw: BaseException) -> Optional[float]:
    explicit = _parse_seconds(getattr(raw, "retry_after", None))
    if explicit is not None:
        return explicit
    response = getattr(raw, "response", None)
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    try:
        return _parse_seconds(headers.get("retry-after"))
    except AttributeError:
        return None


def _mentions(message: str, markers) -> bool:
    return any(marker in message for marker in markers)


def classify(raw: BaseException) -> ClassifiedError:
    """Normalizes a raw failure into exactly one ClassifiedError.

    Already-classified errors are returned unchanged. Never raises.
    """
    if isinstance(raw, ClassifiedError):
        return raw

    message = str(raw) or type(raw).__name__
    lowered = message.lower()
    status = _status_code(raw)

    if status in RATE_LIMIT_STATUS or _mentions(lowered, RATE_LIMIT_MARKERS):
        retry_after = _retry_after(raw)
        if retry_after is None:
            retry_after = DEFAULT_RATE_LIMIT_RETRY_AFTER
        classified: ClassifiedError = RateLimited(message, status, retry_after=retry_after)
    elif status in AUTH_STATUS or _mentions(lowered, AUTH_MARKERS):
        classified = AuthFailure(message, status)
    elif status in VALIDATION_STATUS or _mentions(lowered, VALIDATION_MARKERS):
        classified = ValidationFailure(message, status)
    elif status in TRANSIENT_STATUS or _mentions(lowered, TRANSIENT_MARKERS):
        classified = Transient(message, status)
    else:
        classified = FatalFailure(message, status)

    logger.debug(f"Classified {type(raw).__name__} (status={status}) as {classified.kind.value}")
    return classified
