"""Defines common Value Objects used across the resilience and batch contexts.

These objects represent simple values like credential identities, retry
configuration and the upstream request, ensuring consistency across layers.
"""

from dataclasses import dataclass, field
from typing import NewType, Optional

# === Core Value Objects ===

CredentialName = NewType("CredentialName", str)  # e.g. 'primary', 'extra_1'
ApiKeySecret = NewType("ApiKeySecret", str)      # Never logged
ModelName = NewType("ModelName", str)            # e.g. 'gemini-2.5-flash'

JSON_RESPONSE_FORMAT = "application/json"


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration for a resilient call.

    Delays are in seconds.
    """
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Delays must be non-negative.")


DEFAULT_RETRY_POLICY = RetryPolicy()


@dataclass
class Credential:
    """One upstream access key with its own cooldown state.

    Owned by the CredentialPool; only the pool's recorders mutate it.
    """
    identity: CredentialName
    secret: ApiKeySecret = field(repr=False)
    failure_count: int = 0
    cooldown_until: Optional[float] = None  # Pool clock timestamp

    def is_usable(self, now: float) -> bool:
        return self.cooldown_until is None or self.cooldown_until <= now


@dataclass(frozen=True)
class CredentialStatus:
    """Secret-free view of a credential, safe for display and logging."""
    identity: CredentialName
    failure_count: int
    cooldown_remaining: float


@dataclass(frozen=True)
class GenerationRequest:
    """A single request to the upstream text-generation endpoint."""
    model: ModelName
    system_instruction: str
    user_prompt: str
    temperature: float = 0.7
    response_format: str = JSON_RESPONSE_FORMAT
