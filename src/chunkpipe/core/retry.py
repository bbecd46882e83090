"""Bounded retries with exponential backoff around a single chunk transfer."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .exceptions import InvalidConfigError
from .models import DEFAULT_BACKOFF_MS, DEFAULT_MAX_RETRIES, TransferOutcome

logger = logging.getLogger(__name__)

Attempt = Callable[[], Awaitable[TransferOutcome]]
RetryHook = Callable[[int, TransferOutcome], None]


class RetryPolicy:
    """Retry failed transfers with delays of ``base, 2*base, 4*base, ...``.

    Network, HTTP and application failures are retried. A timed-out attempt
    ends the loop: waiting out another full deadline is left to the caller.
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_backoff_ms: int = DEFAULT_BACKOFF_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_retries = max_retries
        self.base_backoff_ms = base_backoff_ms
        self._sleep = sleep

    @staticmethod
    def backoff_ms(attempt: int, base_backoff_ms: int) -> int:
        """Delay before 1-indexed ``attempt`` (``attempt >= 2``)."""
        return base_backoff_ms * 2 ** (attempt - 2)

    async def execute(
        self,
        attempt: Attempt,
        max_retries: Optional[int] = None,
        base_backoff_ms: Optional[int] = None,
        on_retry: Optional[RetryHook] = None,
    ) -> TransferOutcome:
        """Run ``attempt`` until it succeeds, times out, or retries run out.

        Args:
            attempt: Coroutine factory performing one transfer
            max_retries: Retries after the first attempt (default: policy's)
            base_backoff_ms: Delay before the first retry (default: policy's)
            on_retry: Called with the upcoming attempt number and the failed
                outcome, before sleeping

        Returns:
            The first successful or timed-out outcome, otherwise the last one.
        """
        if max_retries is None:
            max_retries = self.max_retries
        if base_backoff_ms is None:
            base_backoff_ms = self.base_backoff_ms
        if max_retries < 0:
            raise InvalidConfigError("max_retries", max_retries, "must not be negative")

        outcome = await attempt()
        for attempt_number in range(2, max_retries + 2):
            if outcome.success or not outcome.retryable:
                return outcome

            delay_ms = self.backoff_ms(attempt_number, base_backoff_ms)
            logger.warning(
                f"Chunk {outcome.chunk_index}: attempt {attempt_number - 1} failed: {outcome.error}"
            )
            logger.info(f"Chunk {outcome.chunk_index}: retrying in {delay_ms / 1000:.1f}s...")
            if on_retry:
                on_retry(attempt_number, outcome)
            await self._sleep(delay_ms / 1000)
            outcome = await attempt()

        if not outcome.success and outcome.retryable:
            logger.error(f"Chunk {outcome.chunk_index}: exceeded max_retries ({max_retries})")
        return outcome
