"""Exponential backoff with optional jitter."""

import random
from typing import Optional

from leadsight.domain.models.common import RetryPolicy

JITTER_RATIO = 0.2

_default_rng = random.Random()


def compute_delay(attempt: int, policy: RetryPolicy, rng: Optional[random.Random] = None) -> float:
    """Returns the delay in seconds before retrying after `attempt`.

    delay = min(base_delay * 2**attempt, max_delay). With jitter enabled the
    result is drawn uniformly from [delay * 0.8, delay * 1.2].

    Args:
        attempt: Zero-based index of the attempt that just failed.
        policy: Retry configuration supplying base, cap and jitter flag.
        rng: Random source; pass a seeded one for reproducible delays.
    """
    if attempt < 0:
        raise ValueError("attempt must be non-negative.")
    # Cap the exponent so huge attempt counts cannot overflow the float
    exponent = min(attempt, 64)
    delay = min(policy.base_delay * (2 ** exponent), policy.max_delay)
    if not policy.jitter:
        return delay
    source = rng or _default_rng
    return source.uniform(delay * (1 - JITTER_RATIO), delay * (1 + JITTER_RATIO))
