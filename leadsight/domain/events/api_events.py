"""Domain Events related to resilient upstream calls.

Examples include events for when calls are retried, fail, succeed, or when
a credential is put on cooldown.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an upstream call succeeds."""
    credential: str
    attempt_number: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a resilient call fails definitively."""
    error_kind: str
    error_message: str
    attempts: int
    pool_exhausted: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass
class CredentialCooledDown(DomainEvent):
    """Event triggered when a credential is put on cooldown."""
    credential: str
    cooldown_seconds: float
    failure_count: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    attempt_number: int
    max_attempts: int
    error_kind: str
    delay_seconds: float
    credential: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
