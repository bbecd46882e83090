"""Progress, throughput and ETA estimation for a running job."""

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional

from .models import MB, ChunkState, JobProgress, TransferOutcome

logger = logging.getLogger(__name__)

EPSILON = 1e-9

StateListener = Callable[[int, ChunkState, ChunkState], None]


@dataclass
class JobState:
    """Live state of one job, owned by the scheduler.

    Each chunk moves through
    ``pending -> in_flight -> {succeeded | retrying -> in_flight | failed}``.
    """

    total_chunks: int
    in_flight: int = 0
    current_chunk_index: Optional[int] = None
    max_in_flight: int = 0
    chunk_states: Dict[int, ChunkState] = field(default_factory=dict)
    state_counts: Counter = field(default_factory=Counter)
    on_state_change: Optional[StateListener] = None

    @classmethod
    def for_chunks(
        cls,
        indices: Iterable[int],
        on_state_change: Optional[StateListener] = None,
    ) -> "JobState":
        states = {index: ChunkState.PENDING for index in indices}
        return cls(
            total_chunks=len(states),
            chunk_states=states,
            state_counts=Counter({ChunkState.PENDING: len(states)}),
            on_state_change=on_state_change,
        )

    def mark(self, index: int, new_state: ChunkState) -> None:
        old_state = self.chunk_states[index]
        if old_state is new_state:
            return
        self.chunk_states[index] = new_state
        self.state_counts[old_state] -= 1
        self.state_counts[new_state] += 1
        logger.debug(f"Chunk {index}: {old_state.value} -> {new_state.value}")
        if self.on_state_change:
            self.on_state_change(index, old_state, new_state)

    def begin_attempt(self, index: int) -> None:
        self.mark(index, ChunkState.IN_FLIGHT)
        self.current_chunk_index = index
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

    def end_attempt(self) -> None:
        self.in_flight -= 1

    def count(self, state: ChunkState) -> int:
        return self.state_counts[state]


class ProgressAggregator:
    """Fold terminal chunk outcomes into ``JobProgress`` snapshots."""

    def __init__(self, total_chunks: int, clock: Callable[[], float] = time.monotonic):
        self.total_chunks = total_chunks
        self._clock = clock
        self.started_at = clock()
        self.succeeded = 0
        self.failed = 0
        self.succeeded_bytes = 0
        self._last_percent = 0.0

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    def on_outcome(self, outcome: TransferOutcome, job_state: JobState) -> JobProgress:
        """Record ``outcome`` and return the updated progress."""
        if outcome.success:
            self.succeeded += 1
            self.succeeded_bytes += outcome.chunk_size
        else:
            self.failed += 1
        return self.snapshot(job_state)

    def snapshot(self, job_state: JobState) -> JobProgress:
        total = self.total_chunks
        completed = min(self.completed, total)
        elapsed = max(self._clock() - self.started_at, EPSILON)

        percent = 100.0 * completed / total if total else 100.0
        self._last_percent = max(self._last_percent, min(percent, 100.0))

        rate = completed / elapsed
        eta = (total - completed) / max(rate, EPSILON)
        throughput = (self.succeeded_bytes / MB) / elapsed

        return JobProgress(
            total_chunks=total,
            uploaded=self.succeeded,
            in_flight=max(job_state.in_flight, 0),
            completed=completed,
            failed=self.failed,
            pending=job_state.count(ChunkState.PENDING),
            retrying=job_state.count(ChunkState.RETRYING),
            current_chunk_index=job_state.current_chunk_index,
            overall_percent=self._last_percent,
            eta_seconds=max(eta, 0.0),
            throughput_mbps=max(throughput, 0.0),
        )

    @staticmethod
    def format_eta(seconds: float) -> str:
        """Format a duration as ``01h 02m 05s``, with a day count past 24 hours."""
        minutes, secs = divmod(int(seconds), 60)
        hours, minutes = divmod(minutes, 60)
        days, hours = divmod(hours, 24)
        text = f"{hours:02d}h {minutes:02d}m {secs:02d}s"
        if days:
            return f"{days}d {text}"
        return text
