"""Tests for combining chunk outcomes into a job result."""

from chunkpipe.core.combiner import ResultCombiner
from chunkpipe.core.exceptions import ErrorKind
from chunkpipe.core.models import TransferOutcome


def outcome(index: int, success: bool = True, error: str = None) -> TransferOutcome:
    return TransferOutcome(
        chunk_index=index,
        success=success,
        error=error or (None if success else "HTTP 500: boom"),
        error_kind=None if success else ErrorKind.HTTP,
        server_payload={"chunkIndex": index} if success else None,
    )


class TestTolerant:
    def test_exactly_half_failed_is_success(self) -> None:
        outcomes = [outcome(0), outcome(1, False), outcome(2), outcome(3, False)]
        result = ResultCombiner().combine(outcomes, 4)

        assert result.success
        assert result.message == "Processed 2/4 chunks successfully"
        assert result.chunks_failed == 2

    def test_more_than_half_failed_is_failure(self) -> None:
        outcomes = [outcome(0), outcome(1, False), outcome(2, False), outcome(3, False)]
        result = ResultCombiner().combine(outcomes, 4)

        assert not result.success
        assert result.message == "Only 1/4 chunks succeeded; 3 failed"

    def test_results_sorted_by_index(self) -> None:
        outcomes = [outcome(2), outcome(0), outcome(1, False)]
        result = ResultCombiner().combine(outcomes, 3)

        assert [o.chunk_index for o in result.per_chunk_results] == [0, 1, 2]
        assert result.failed_indices == [1]
        assert result.server_results == [{"chunkIndex": 0}, {"chunkIndex": 2}]
        assert result.discipline == "parallel"

    def test_empty_job_is_failure(self) -> None:
        assert not ResultCombiner().combine([], 0).success

    def test_custom_threshold(self) -> None:
        outcomes = [outcome(0), outcome(1), outcome(2), outcome(3, False)]

        assert ResultCombiner(0.2).combine(outcomes, 4).success is False
        assert ResultCombiner(0.25).combine(outcomes, 4).success is True


class TestFailFast:
    def test_all_succeeded(self) -> None:
        result = ResultCombiner().combine([outcome(0), outcome(1)], 2, fail_fast=True)

        assert result.success
        assert result.message == "Successfully uploaded 2 chunks"
        assert result.discipline == "sequential"

    def test_failure_names_one_based_chunk(self) -> None:
        result = ResultCombiner().combine(
            [outcome(0), outcome(1, False, "connection refused")], 5, fail_fast=True
        )

        assert not result.success
        assert result.message == "Failed to upload chunk 2: connection refused"
        assert result.chunks_attempted == 2
        assert result.total_chunks == 5

    def test_missing_chunks_are_failure(self) -> None:
        result = ResultCombiner().combine([outcome(0)], 3, fail_fast=True)

        assert not result.success
        assert result.message == "Upload stopped after 1/3 chunks"
