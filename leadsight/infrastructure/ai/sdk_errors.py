"""Helpers shared by the SDK adapters for building UpstreamError."""

from typing import Any, Optional


def retry_after_from_response(response: Any) -> Optional[float]:
    """Reads a numeric `retry-after` header from an SDK response, if any."""
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def extract_text(completion: Any) -> Optional[str]:
    """Pulls the first choice's message content from a chat completion."""
    try:
        content = completion.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return None
    if not content or not content.strip():
        return None
    return content.strip()
