"""Drives many resilient calls across a large lead list.

The input is truncated to the item limit, split into fixed-size batches, and
each batch is sent through the ResilientCaller once. Progress is produced as
an async generator of events; a consumer that stops iterating simply
abandons the run between batches.

When the caller reports rate limiting that it could not absorb, the
orchestrator waits for the reported retry-after and restarts the same
batch. That outer loop is bounded by a per-batch retry count. Every retry
wait of the run, the caller's backoff waits included, is drawn from one
total wait budget; a wait that would overdraw it stops the run instead.
"""

import asyncio
import logging
from typing import AsyncIterator, List, Optional, Sequence

from leadsight.core.services.insight_service import InsightService
from leadsight.domain.events.progress_events import (
    BatchErrorEvent,
    BatchEvent,
    CompleteEvent,
    ProgressEvent,
    StatusEvent,
)
from leadsight.domain.models.common import RetryPolicy
from leadsight.domain.models.errors import (
    DEFAULT_RATE_LIMIT_RETRY_AFTER,
    ClassifiedError,
    ErrorKind,
    RateLimited,
    RetryBudgetExhausted,
)
from leadsight.domain.models.insights import (
    BatchProgress,
    LeadRecord,
    ProspectInsight,
    chunk,
    progress_percent,
)
from leadsight.infrastructure.resilience.resilient_caller import ResilientCaller, Sleeper

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_ITEM_LIMIT = 15
DEFAULT_MAX_OUTER_RETRIES = 10
DEFAULT_MAX_TOTAL_WAIT_S = 600.0
DEFAULT_INTER_BATCH_DELAY_S = 0.5


class _RunBudget:
    """Retry wait time spent by one run, shared by both retry loops."""

    def __init__(self, limit_s: float, sleep: Sleeper):
        self.limit_s = limit_s
        self.waited_s = 0.0
        self._sleep = sleep

    async def sleep(self, seconds: float) -> None:
        if self.waited_s + seconds > self.limit_s:
            raise RetryBudgetExhausted(
                f"Waiting {seconds:.0f}s would exceed the run's {self.limit_s:.0f}s wait budget",
                waited_s=self.waited_s,
            )
        self.waited_s += seconds
        await self._sleep(seconds)


class BatchOrchestrator:
    """Processes lead batches sequentially and reports progress."""

    def __init__(
        self,
        caller: ResilientCaller,
        insight_service: InsightService,
        policy: Optional[RetryPolicy] = None,
        max_outer_retries: int = DEFAULT_MAX_OUTER_RETRIES,
        max_total_wait_s: float = DEFAULT_MAX_TOTAL_WAIT_S,
        inter_batch_delay_s: float = DEFAULT_INTER_BATCH_DELAY_S,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initializes the BatchOrchestrator.

        Args:
            caller: Resilient caller used once per batch attempt.
            insight_service: Builds requests and parses replies.
            policy: Retry policy for every call of this orchestrator;
                the caller's default when None.
            max_outer_retries: Restarts allowed per batch after the caller
                gave up on rate limiting.
            max_total_wait_s: Ceiling on retry waiting for one run, covering
                the caller's backoff waits and the outer retries. Pauses
                between batches are pacing and are not charged.
            inter_batch_delay_s: Pause between consecutive batches.
            sleep: Coroutine used for every wait. Injected for tests.
        """
        if max_outer_retries < 0:
            raise ValueError("max_outer_retries must be non-negative.")
        self.caller = caller
        self.insight_service = insight_service
        self.policy = policy
        self.max_outer_retries = max_outer_retries
        self.max_total_wait_s = max_total_wait_s
        self.inter_batch_delay_s = inter_batch_delay_s
        self._sleep = sleep

    async def process(
        self,
        items: Sequence[LeadRecord],
        batch_size: int = DEFAULT_BATCH_SIZE,
        item_limit: int = DEFAULT_ITEM_LIMIT,
    ) -> AsyncIterator[ProgressEvent]:
        """Yields a status event, one event per batch, then a complete event."""
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        if item_limit < 1:
            raise ValueError("item_limit must be at least 1.")

        all_items = list(items)
        selected = all_items[:item_limit]
        dropped = len(all_items) - len(selected)
        batches = chunk(selected, batch_size)
        total_batches = len(batches)

        message = f"Starting analysis of {len(selected)} prospect{'s' if len(selected) != 1 else ''}"
        if dropped:
            message += f" (file contains {len(all_items)}; first {item_limit} processed)"
            logger.warning(f"Input truncated to {item_limit} items; {dropped} dropped.")
        logger.info(f"{message} in {total_batches} batch(es) of up to {batch_size}")
        yield StatusEvent(
            message=message,
            total_items_in_input=len(all_items),
            items_to_process=len(selected),
            total_batches=total_batches,
            truncated=dropped > 0,
            dropped_items=dropped,
        )

        results: List[ProspectInsight] = []
        failed_batches: List[int] = []
        items_done = 0
        stopped_early = False
        budget = _RunBudget(self.max_total_wait_s, self._sleep)

        for batch_index, batch in enumerate(batches, start=1):
            items_done += len(batch)
            progress = BatchProgress(
                batch_index=batch_index,
                total_batches=total_batches,
                items_in_batch=tuple(batch),
                cumulative_progress_percent=progress_percent(items_done, len(selected)),
            )
            try:
                batch_results = await self._run_batch(batch, batch_index, total_batches, budget)
            except RetryBudgetExhausted as e:
                logger.error(f"Batch {batch_index}/{total_batches}: {e}. Stopping run.")
                failed_batches.append(batch_index)
                stopped_early = True
                kind = e.last_error.kind if e.last_error is not None else ErrorKind.RATE_LIMITED
                yield BatchErrorEvent(
                    message=str(e),
                    error_kind=kind.value,
                    progress=progress,
                    fatal=True,
                )
                break
            except ClassifiedError as e:
                logger.error(f"Batch {batch_index}/{total_batches} failed ({e.kind.value}): {e.message}")
                failed_batches.append(batch_index)
                yield BatchErrorEvent(
                    message=f"Error analyzing batch {batch_index}: {e.message}",
                    error_kind=e.kind.value,
                    progress=progress,
                )
            except Exception as e:
                logger.error(f"Batch {batch_index}/{total_batches} failed unexpectedly: {e}", exc_info=True)
                failed_batches.append(batch_index)
                yield BatchErrorEvent(
                    message=f"Error analyzing batch {batch_index}: {e}",
                    error_kind=ErrorKind.FATAL.value,
                    progress=progress,
                )
            else:
                results.extend(batch_results)
                logger.info(
                    f"Batch {batch_index}/{total_batches} complete: {len(batch_results)} result(s), "
                    f"{progress.cumulative_progress_percent}% done"
                )
                yield BatchEvent(
                    progress=progress,
                    results=tuple(batch_results),
                    total_processed=len(results),
                )

            if batch_index < total_batches and self.inter_batch_delay_s > 0:
                await self._sleep(self.inter_batch_delay_s)

        report = self.insight_service.summarize(results)
        logger.info(
            f"Run finished: {len(results)} result(s), {len(failed_batches)} failed batch(es)"
            f"{', stopped early' if stopped_early else ''}"
        )
        yield CompleteEvent(
            report=report,
            total_processed=len(results),
            failed_batches=tuple(failed_batches),
            stopped_early=stopped_early,
        )

    async def _run_batch(
        self,
        batch: Sequence[LeadRecord],
        batch_index: int,
        total_batches: int,
        budget: _RunBudget,
    ) -> List[ProspectInsight]:
        """Runs one batch, restarting it while the pool is rate limited."""
        request = self.insight_service.build_request(batch)
        outer_retries = 0
        while True:
            try:
                raw = await self.caller.call(request, self.policy, sleep=budget.sleep)
            except RetryBudgetExhausted as exhausted:
                exhausted.outer_retries = outer_retries
                raise
            except RateLimited as e:
                wait = e.retry_after if e.retry_after is not None else DEFAULT_RATE_LIMIT_RETRY_AFTER
                if outer_retries >= self.max_outer_retries:
                    raise RetryBudgetExhausted(
                        f"Rate limited after {outer_retries} outer retries: {e.message}",
                        e, outer_retries, budget.waited_s,
                    ) from e
                logger.warning(
                    f"Batch {batch_index}/{total_batches} rate limited "
                    f"(pool_exhausted={e.pool_exhausted}); outer retry "
                    f"{outer_retries + 1}/{self.max_outer_retries} in {wait:.2f}s"
                )
                try:
                    await budget.sleep(wait)
                except RetryBudgetExhausted as exhausted:
                    exhausted.last_error = e
                    exhausted.outer_retries = outer_retries
                    raise exhausted from e
                outer_retries += 1
                continue
            return self.insight_service.parse_results(raw, batch)
