"""Dispatch of a planned chunk sequence under a sequential or parallel discipline."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

from .client import TransferClient
from .combiner import ResultCombiner
from .exceptions import ErrorKind, InvalidConfigError
from .models import (
    ChunkForm,
    ChunkRange,
    ChunkState,
    JobConfig,
    JobProgress,
    JobResult,
    ProjectMetadata,
    TransferOutcome,
)
from .progress import JobState, ProgressAggregator, StateListener
from .retry import RetryPolicy
from .source import ChunkSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[JobProgress], None]


@dataclass(frozen=True)
class Sequential:
    """Strict index order, one chunk at a time, stop at the first failure."""

    name = "sequential"
    form = ChunkForm.ORDERED


@dataclass(frozen=True)
class Parallel:
    """Concurrent batches of ``max_concurrency`` chunks; failures are tolerated.

    ``max_concurrency=None`` uses the job configuration's value.
    """

    max_concurrency: Optional[int] = None

    name = "parallel"
    form = ChunkForm.INDEPENDENT

    def __post_init__(self) -> None:
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise InvalidConfigError(
                "max_concurrency", self.max_concurrency, "must be at least 1"
            )


Discipline = Union[Sequential, Parallel]


class _Job:
    """Per-run bookkeeping. Discarded once the result is returned."""

    def __init__(
        self,
        ranges: Sequence[ChunkRange],
        source: ChunkSource,
        timeouts: Dict[int, int],
        clock: Callable[[], float],
        on_state_change: Optional[StateListener],
    ):
        self.source = source
        self.timeouts = timeouts
        self.timestamp_ms = int(time.time() * 1000)
        self.state = JobState.for_chunks((r.index for r in ranges), on_state_change)
        self.aggregator = ProgressAggregator(len(ranges), clock=clock)
        self.outcomes: List[TransferOutcome] = []


class UploadScheduler:
    """Run every chunk of a job through the retry policy and transfer client.

    Payload bytes are read from the source only when a chunk is dispatched,
    so at most one batch of payloads is held at a time.
    """

    def __init__(
        self,
        client: TransferClient,
        config: Optional[JobConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.config = config or JobConfig()
        self.retry_policy = retry_policy or RetryPolicy(
            self.config.max_retries, self.config.base_backoff_ms
        )
        self.combiner = ResultCombiner(self.config.failure_threshold)
        self._clock = clock

    async def run(
        self,
        ranges: Sequence[ChunkRange],
        source: ChunkSource,
        metadata: ProjectMetadata,
        discipline: Optional[Discipline] = None,
        on_progress: Optional[ProgressCallback] = None,
        file_name: str = "upload.bin",
        on_state_change: Optional[StateListener] = None,
    ) -> JobResult:
        """Transfer the planned ``ranges`` of ``source`` and return the job result.

        Args:
            ranges: Planned chunk ranges in index order
            source: Source the chunk payloads are read from
            metadata: Project metadata sent with each chunk
            discipline: ``Sequential()`` (default) or ``Parallel(...)``
            on_progress: Called after every terminal chunk outcome
            file_name: Source file name reported to the service
            on_state_change: Called with ``(index, old_state, new_state)`` on
                every chunk state transition

        Raises:
            InvalidConfigError: if a chunk's timeout is not positive. Checked
                before anything is sent.
        """
        if discipline is None:
            discipline = Sequential()
        timeouts = {r.index: self.config.timeout_for(r.size) for r in ranges}
        job = _Job(ranges, source, timeouts, self._clock, on_state_change)
        started = self._clock()

        logger.info(
            f"Starting {discipline.name} upload of {len(ranges)} chunks for '{metadata.project_name}'"
        )

        if isinstance(discipline, Parallel):
            concurrency = discipline.max_concurrency or self.config.max_concurrency
            await self._run_parallel(job, ranges, metadata, concurrency, on_progress, file_name)
            result = self.combiner.combine(
                job.outcomes, len(ranges), fail_fast=False, discipline=discipline.name
            )
        else:
            await self._run_sequential(job, ranges, metadata, on_progress, file_name)
            result = self.combiner.combine(
                job.outcomes, len(ranges), fail_fast=True, discipline=discipline.name
            )

        result = result.model_copy(
            update={
                "chunk_states": dict(job.state.chunk_states),
                "max_in_flight": job.state.max_in_flight,
            }
        )
        elapsed = self._clock() - started
        log = logger.info if result.success else logger.error
        log(f"{result.message} in {ProgressAggregator.format_eta(elapsed)}")
        return result

    async def _run_sequential(
        self,
        job: _Job,
        ranges: Sequence[ChunkRange],
        metadata: ProjectMetadata,
        on_progress: Optional[ProgressCallback],
        file_name: str,
    ) -> None:
        for chunk_range in ranges:
            outcome = await self._dispatch(job, chunk_range, metadata, ChunkForm.ORDERED, file_name)
            self._record(job, outcome, on_progress)
            if not outcome.success:
                logger.error(
                    f"Chunk {chunk_range.index}: failed permanently, stopping after "
                    f"{len(job.outcomes)}/{len(ranges)} chunks"
                )
                return

    async def _run_parallel(
        self,
        job: _Job,
        ranges: Sequence[ChunkRange],
        metadata: ProjectMetadata,
        concurrency: int,
        on_progress: Optional[ProgressCallback],
        file_name: str,
    ) -> None:
        async def dispatch_and_record(chunk_range: ChunkRange) -> None:
            outcome = await self._dispatch(
                job, chunk_range, metadata, ChunkForm.INDEPENDENT, file_name
            )
            self._record(job, outcome, on_progress)

        for start in range(0, len(ranges), concurrency):
            batch = ranges[start:start + concurrency]
            logger.debug(
                f"Dispatching batch of {len(batch)} chunks "
                f"({batch[0].index}-{batch[-1].index})"
            )
            await asyncio.gather(*(dispatch_and_record(r) for r in batch))

    async def _dispatch(
        self,
        job: _Job,
        chunk_range: ChunkRange,
        metadata: ProjectMetadata,
        form: ChunkForm,
        file_name: str,
    ) -> TransferOutcome:
        timeout_ms = job.timeouts[chunk_range.index]
        chunk = job.source.chunk(chunk_range, job.timestamp_ms)

        async def attempt() -> TransferOutcome:
            job.state.begin_attempt(chunk.index)
            try:
                return await self.client.send(chunk, metadata, timeout_ms, form, file_name)
            finally:
                job.state.end_attempt()

        def on_retry(attempt_number: int, outcome: TransferOutcome) -> None:
            job.state.mark(chunk.index, ChunkState.RETRYING)

        outcome = await self.retry_policy.execute(
            attempt, self.config.max_retries, self.config.base_backoff_ms, on_retry
        )
        if outcome.error_kind is ErrorKind.TIMEOUT and self.config.redispatch_on_timeout:
            logger.warning(
                f"Chunk {chunk.index}: timed out after {timeout_ms}ms, dispatching once more"
            )
            job.state.mark(chunk.index, ChunkState.RETRYING)
            outcome = await self.retry_policy.execute(
                attempt, self.config.max_retries, self.config.base_backoff_ms, on_retry
            )
        return outcome

    def _record(
        self,
        job: _Job,
        outcome: TransferOutcome,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        new_state = ChunkState.SUCCEEDED if outcome.success else ChunkState.FAILED
        job.state.mark(outcome.chunk_index, new_state)
        job.outcomes.append(outcome)
        progress = job.aggregator.on_outcome(outcome, job.state)

        if outcome.success:
            logger.info(
                f"Chunk {outcome.chunk_index}: uploaded, progress: {progress.overall_percent:.1f}%, "
                f"est time remaining: {ProgressAggregator.format_eta(progress.eta_seconds)}"
            )
        else:
            logger.warning(f"Chunk {outcome.chunk_index}: failed: {outcome.error}")

        if on_progress:
            try:
                on_progress(progress)
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")
