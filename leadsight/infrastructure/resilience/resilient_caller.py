"""Service for executing one logical upstream request with retries.

Each attempt takes a credential from the pool, performs the call, and on
failure classifies the error and applies the retry action for its kind:
rotate the credential, cool it down and wait, wait, or abort.
"""

import asyncio
import enum
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from leadsight.domain.events.api_events import (
    ApiCallFailed,
    ApiCallSucceeded,
    CredentialCooledDown,
    RetryScheduled,
)
from leadsight.domain.interfaces.text_generator import TextGenerator
from leadsight.domain.models.common import DEFAULT_RETRY_POLICY, Credential, GenerationRequest, RetryPolicy
from leadsight.domain.models.errors import (
    ClassifiedError,
    FatalFailure,
    RateLimited,
    RetryAction,
    RetryBudgetExhausted,
)
from leadsight.infrastructure.resilience.backoff import compute_delay
from leadsight.infrastructure.resilience.credential_pool import CredentialPool
from leadsight.infrastructure.resilience.error_classifier import classify

logger = logging.getLogger(__name__)

AUTH_FAILURE_COOLDOWN_S = 300.0  # 5 minutes

Sleeper = Callable[[float], Awaitable[Any]]


class CallState(enum.Enum):
    SELECTING = "selecting"
    CALLING = "calling"
    SUCCEEDED = "succeeded"
    RETRY_WAIT = "retry_wait"
    ABORTED = "aborted"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"


def _dispatch_event(event: Any) -> None:
    logger.debug(f"EVENT: {event}")


class ResilientCaller:
    """Turns an unreliable multi-key endpoint into a single call contract."""

    def __init__(
        self,
        pool: CredentialPool,
        generator: TextGenerator,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Sleeper = asyncio.sleep,
        auth_cooldown_s: float = AUTH_FAILURE_COOLDOWN_S,
    ):
        """Initializes the ResilientCaller.

        Args:
            pool: Credential pool shared by every call in the process.
            generator: Adapter performing a single upstream attempt.
            policy: Default retry policy, overridable per call.
            sleep: Coroutine used for every retry wait. Injected for tests.
            auth_cooldown_s: Cooldown applied to a credential that failed auth.
        """
        self.pool = pool
        self.generator = generator
        self.policy = policy
        self._sleep = sleep
        self.auth_cooldown_s = auth_cooldown_s
        self.last_state: CallState = CallState.SELECTING

        logger.info(
            f"ResilientCaller initialized: max_attempts={policy.max_attempts}, "
            f"base_delay={policy.base_delay}s, max_delay={policy.max_delay}s, jitter={policy.jitter}"
        )

    def _transition(self, state: CallState) -> None:
        logger.debug(f"Call state: {self.last_state.value} -> {state.value}")
        self.last_state = state

    def _pool_exhausted_error(self, attempt: int) -> RateLimited:
        wait = self.pool.min_remaining_cooldown()
        error = RateLimited(
            f"All API credentials are on cooldown. Minimum wait: {wait:.0f}s",
            retry_after=wait,
        )
        error.pool_exhausted = True
        error.attempts = attempt
        return error

    async def call(
        self,
        request: GenerationRequest,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Sleeper] = None,
    ) -> str:
        """Performs one logical request, retrying internally.

        Args:
            request: The upstream request.
            policy: Overrides the default retry policy for this call only.
            sleep: Overrides the wait coroutine for this call only. It may
                raise RetryBudgetExhausted to refuse a wait; the error being
                waited out is attached before it propagates.

        Returns:
            The upstream text.

        Raises:
            RateLimited: With `pool_exhausted=True` when no credential is
                usable, carrying the minimum remaining cooldown as retry_after.
            ClassifiedError: The first ValidationFailure/FatalFailure, or the
                last error once attempts are exhausted.
            RetryBudgetExhausted: If `sleep` refused a retry wait.
        """
        policy = policy or self.policy
        sleep = sleep or self._sleep
        last_error: Optional[ClassifiedError] = None
        last_cause: Optional[BaseException] = None
        self.last_state = CallState.SELECTING

        for attempt in range(policy.max_attempts):
            self._transition(CallState.SELECTING)
            credential = self.pool.next_usable()
            if credential is None:
                error = self._pool_exhausted_error(attempt)
                self._transition(CallState.ABORTED)
                logger.warning(f"{error.message} (attempt {attempt + 1}/{policy.max_attempts})")
                _dispatch_event(ApiCallFailed(
                    error_kind=error.kind.value, error_message=error.message,
                    attempts=attempt, pool_exhausted=True,
                ))
                raise error

            self._transition(CallState.CALLING)
            start_time = time.perf_counter()
            try:
                text = await self.generator.generate(request, credential.secret)
            except Exception as exc:
                classified = classify(exc)
                last_error, last_cause = classified, exc
                has_more = attempt < policy.max_attempts - 1
                await self._handle_failure(classified, exc, credential, attempt, policy, has_more, sleep)
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            self.pool.record_success(credential)
            self._transition(CallState.SUCCEEDED)
            _dispatch_event(ApiCallSucceeded(
                credential=credential.identity, attempt_number=attempt + 1, latency_ms=latency_ms,
            ))
            return text

        self._transition(CallState.ATTEMPTS_EXHAUSTED)
        if last_error is None:
            raise FatalFailure("Retry loop finished without attempting a call")
        last_error.attempts = policy.max_attempts
        logger.error(
            f"Max attempts ({policy.max_attempts}) reached. Last error: "
            f"{last_error.kind.value}: {last_error.message}"
        )
        _dispatch_event(ApiCallFailed(
            error_kind=last_error.kind.value, error_message=last_error.message,
            attempts=policy.max_attempts,
        ))
        raise last_error from last_cause

    async def _handle_failure(
        self,
        error: ClassifiedError,
        cause: BaseException,
        credential: Credential,
        attempt: int,
        policy: RetryPolicy,
        has_more: bool,
        sleep: Sleeper,
    ) -> None:
        """Applies the retry action for the error's kind; raises on abort."""
        action = error.action

        if action is RetryAction.ABORT:
            self._transition(CallState.ABORTED)
            error.attempts = attempt + 1
            logger.error(
                f"Non-retryable {error.kind.value} error with credential "
                f"'{credential.identity}' on attempt {attempt + 1}: {error.message}"
            )
            _dispatch_event(ApiCallFailed(
                error_kind=error.kind.value, error_message=error.message, attempts=attempt + 1,
            ))
            raise error from cause

        if action is RetryAction.ROTATE:
            # Rotation replaces the wait
            self.pool.record_failure(credential, self.auth_cooldown_s)
            _dispatch_event(CredentialCooledDown(
                credential=credential.identity, cooldown_seconds=self.auth_cooldown_s,
                failure_count=credential.failure_count,
            ))
            logger.warning(
                f"Auth failure with credential '{credential.identity}' on attempt "
                f"{attempt + 1}/{policy.max_attempts}; rotating."
            )
            return

        retry_after = error.retry_after
        delay = retry_after if retry_after is not None else compute_delay(attempt, policy)

        if action is RetryAction.COOLDOWN_AND_WAIT:
            self.pool.record_failure(credential, delay)
            _dispatch_event(CredentialCooledDown(
                credential=credential.identity, cooldown_seconds=delay,
                failure_count=credential.failure_count,
            ))

        if not has_more:
            return

        self._transition(CallState.RETRY_WAIT)
        logger.warning(
            f"Retryable {error.kind.value} error with credential '{credential.identity}' on attempt "
            f"{attempt + 1}/{policy.max_attempts}: {error.message}. Waiting {delay:.2f}s..."
        )
        _dispatch_event(RetryScheduled(
            attempt_number=attempt + 1, max_attempts=policy.max_attempts,
            error_kind=error.kind.value, delay_seconds=delay, credential=credential.identity,
        ))
        try:
            await sleep(delay)
        except RetryBudgetExhausted as e:
            self._transition(CallState.ABORTED)
            if e.last_error is None:
                e.last_error = error
            raise
