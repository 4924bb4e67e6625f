"""Pool of upstream credentials with independent cooldown timers.

Selection is round-robin from a single scan position. A credential whose
cooldown lies in the future is skipped; one without a cooldown is always
eligible.
"""

import logging
import time
from threading import Lock
from typing import Callable, Iterable, List, Optional

from leadsight.domain.models.common import Credential, CredentialStatus
from leadsight.domain.models.errors import CredentialPoolError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CredentialPool:
    """Holds the ordered credentials and their cooldown state.

    Every public method runs under one lock, so a concurrent reader never
    sees a cooldown that does not match its failure count.
    """

    def __init__(self, credentials: Iterable[Credential], clock: Clock = time.monotonic):
        """Initializes the pool.

        Args:
            credentials: Credentials in preference order.
            clock: Monotonic time source in seconds. Injected for tests.

        Raises:
            CredentialPoolError: If no credentials are given.
        """
        self._credentials: List[Credential] = list(credentials)
        if not self._credentials:
            raise CredentialPoolError("No API credentials configured; at least one is required.")
        self._clock = clock
        self._position = 0
        self._lock = Lock()
        logger.info(
            f"CredentialPool initialized with {len(self._credentials)} credential(s): "
            f"{', '.join(c.identity for c in self._credentials)}"
        )

    def __len__(self) -> int:
        return len(self._credentials)

    def next_usable(self) -> Optional[Credential]:
        """Returns the next eligible credential, or None if all are cooling down.

        The scan starts at the stored position and wraps around once. Only a
        successful selection moves the position, to just past the selected
        credential.
        """
        with self._lock:
            now = self._clock()
            count = len(self._credentials)
            for offset in range(count):
                index = (self._position + offset) % count
                credential = self._credentials[index]
                if not credential.is_usable(now):
                    continue
                self._position = (index + 1) % count
                logger.debug(f"Selected credential '{credential.identity}'")
                return credential
            logger.debug("All credentials are on cooldown.")
            return None

    def record_failure(self, credential: Credential, cooldown_seconds: float) -> None:
        """Counts a failure and puts the credential on cooldown."""
        with self._lock:
            credential.failure_count += 1
            credential.cooldown_until = self._clock() + max(0.0, cooldown_seconds)
            logger.warning(
                f"Credential '{credential.identity}' cooling down for {cooldown_seconds:.2f}s "
                f"(failures={credential.failure_count})"
            )

    def record_success(self, credential: Credential) -> None:
        """Resets the failure count and clears any cooldown."""
        with self._lock:
            credential.failure_count = 0
            credential.cooldown_until = None

    def min_remaining_cooldown(self) -> float:
        """Seconds until the soonest credential becomes eligible (0.0 if one is now)."""
        with self._lock:
            now = self._clock()
            return min(
                max(0.0, c.cooldown_until - now) if c.cooldown_until is not None else 0.0
                for c in self._credentials
            )

    def snapshot(self) -> List[CredentialStatus]:
        """Secret-free status rows, in pool order."""
        with self._lock:
            now = self._clock()
            return [
                CredentialStatus(
                    identity=c.identity,
                    failure_count=c.failure_count,
                    cooldown_remaining=(
                        max(0.0, c.cooldown_until - now) if c.cooldown_until is not None else 0.0
                    ),
                )
                for c in self._credentials
            ]
