"""Merge per-chunk outcomes into a job-level result."""

import logging
from typing import Iterable, Optional

from .models import DEFAULT_FAILURE_THRESHOLD, JobResult, TransferOutcome

logger = logging.getLogger(__name__)


class ResultCombiner:
    """Classify a job from its chunk outcomes.

    In fail-fast mode the job succeeds only if every planned chunk succeeded.
    Otherwise it fails only when more than ``failure_threshold`` of the
    planned chunks failed; with the default of 0.5 a job where exactly half
    of the chunks failed still counts as a degraded success.
    """

    def __init__(self, failure_threshold: float = DEFAULT_FAILURE_THRESHOLD):
        self.failure_threshold = failure_threshold

    def threshold_exceeded(self, failed: int, total: int) -> bool:
        return failed > self.failure_threshold * total

    def combine(
        self,
        outcomes: Iterable[TransferOutcome],
        total_chunks: Optional[int] = None,
        fail_fast: bool = False,
        discipline: Optional[str] = None,
    ) -> JobResult:
        ordered = sorted(outcomes, key=lambda o: o.chunk_index)
        total = len(ordered) if total_chunks is None else total_chunks
        succeeded = sum(1 for o in ordered if o.success)
        failed = len(ordered) - succeeded
        if discipline is None:
            discipline = "sequential" if fail_fast else "parallel"

        if fail_fast:
            first_failure = next((o for o in ordered if not o.success), None)
            success = first_failure is None and succeeded == total
            if success:
                message = f"Successfully uploaded {total} chunks"
            elif first_failure is not None:
                message = f"Failed to upload chunk {first_failure.chunk_index + 1}"
                if first_failure.error:
                    message += f": {first_failure.error}"
            else:
                message = f"Upload stopped after {succeeded}/{total} chunks"
        else:
            success = total > 0 and not self.threshold_exceeded(failed, total)
            if success:
                message = f"Processed {succeeded}/{total} chunks successfully"
            else:
                message = f"Only {succeeded}/{total} chunks succeeded; {failed} failed"

        logger.debug(f"Combined {len(ordered)} outcomes ({discipline}): {message}")
        return JobResult(
            success=success,
            message=message,
            chunks_attempted=len(ordered),
            chunks_succeeded=succeeded,
            chunks_failed=failed,
            total_chunks=total,
            discipline=discipline,
            per_chunk_results=ordered,
        )
