"""Tests for progress aggregation."""

import pytest

from conftest import FakeClock

from chunkpipe.core.exceptions import ErrorKind
from chunkpipe.core.models import MB, ChunkState, TransferOutcome
from chunkpipe.core.progress import JobState, ProgressAggregator


def outcome(index: int, success: bool = True, size: int = MB) -> TransferOutcome:
    return TransferOutcome(
        chunk_index=index,
        success=success,
        error_kind=None if success else ErrorKind.NETWORK,
        chunk_size=size,
    )


class TestProgressAggregator:
    def test_counts_and_percent(self) -> None:
        clock = FakeClock()
        aggregator = ProgressAggregator(4, clock=clock)
        state = JobState(total_chunks=4, current_chunk_index=1)

        clock.advance(1.0)
        progress = aggregator.on_outcome(outcome(0), state)
        assert progress.uploaded == 1
        assert progress.completed == 1
        assert progress.overall_percent == pytest.approx(25.0)
        assert progress.current_chunk_index == 1

        progress = aggregator.on_outcome(outcome(1, success=False), state)
        assert progress.uploaded == 1
        assert progress.failed == 1
        assert progress.completed == 2
        assert progress.overall_percent == pytest.approx(50.0)

    def test_percent_is_monotonic_and_reaches_100(self) -> None:
        clock = FakeClock()
        aggregator = ProgressAggregator(5, clock=clock)
        state = JobState(total_chunks=5)

        percents = []
        for index in (3, 0, 4, 1, 2):
            clock.advance(0.5)
            percents.append(aggregator.on_outcome(outcome(index), state).overall_percent)

        assert percents == sorted(percents)
        assert percents[-1] == pytest.approx(100.0)

    def test_eta_and_throughput(self) -> None:
        clock = FakeClock()
        aggregator = ProgressAggregator(4, clock=clock)
        state = JobState(total_chunks=4)

        clock.advance(2.0)
        progress = aggregator.on_outcome(outcome(0, size=2 * MB), state)

        # one chunk per 2s, three to go
        assert progress.eta_seconds == pytest.approx(6.0)
        assert progress.throughput_mbps == pytest.approx(1.0)

    def test_failed_bytes_do_not_count_toward_throughput(self) -> None:
        clock = FakeClock()
        aggregator = ProgressAggregator(2, clock=clock)
        clock.advance(1.0)

        progress = aggregator.on_outcome(outcome(0, success=False), JobState(total_chunks=2))
        assert progress.throughput_mbps == 0.0

    def test_zero_elapsed_time_is_safe(self) -> None:
        aggregator = ProgressAggregator(2, clock=FakeClock())
        progress = aggregator.on_outcome(outcome(0), JobState(total_chunks=2))

        assert progress.eta_seconds >= 0.0
        assert progress.throughput_mbps >= 0.0

    def test_in_flight_copied_from_state(self) -> None:
        aggregator = ProgressAggregator(3, clock=FakeClock())
        progress = aggregator.snapshot(JobState(total_chunks=3, in_flight=2))

        assert progress.in_flight == 2
        assert progress.completed == 0

    def test_format_eta(self) -> None:
        assert ProgressAggregator.format_eta(3725) == "01h 02m 05s"

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "00h 00m 00s"),
            (86399, "23h 59m 59s"),
            (90000, "1d 01h 00m 00s"),
            (3 * 86400 + 5, "3d 00h 00m 05s"),
        ],
    )
    def test_format_eta_past_a_day(self, seconds: int, expected: str) -> None:
        assert ProgressAggregator.format_eta(seconds) == expected

    def test_snapshot_counts_pending_and_retrying(self) -> None:
        state = JobState.for_chunks(range(4))
        state.begin_attempt(0)
        state.mark(0, ChunkState.RETRYING)
        state.begin_attempt(1)

        progress = ProgressAggregator(4, clock=FakeClock()).snapshot(state)

        assert progress.pending == 2
        assert progress.retrying == 1
        assert progress.in_flight == 2
        assert progress.current_chunk_index == 1


class TestJobState:
    def test_starts_pending(self) -> None:
        state = JobState.for_chunks(range(3))

        assert state.total_chunks == 3
        assert state.count(ChunkState.PENDING) == 3
        assert set(state.chunk_states.values()) == {ChunkState.PENDING}

    def test_listener_sees_each_transition_once(self) -> None:
        seen = []
        state = JobState.for_chunks([7], on_state_change=lambda *change: seen.append(change))

        state.begin_attempt(7)
        state.mark(7, ChunkState.IN_FLIGHT)
        state.end_attempt()
        state.mark(7, ChunkState.SUCCEEDED)

        assert seen == [
            (7, ChunkState.PENDING, ChunkState.IN_FLIGHT),
            (7, ChunkState.IN_FLIGHT, ChunkState.SUCCEEDED),
        ]
        assert state.count(ChunkState.SUCCEEDED) == 1
        assert state.count(ChunkState.PENDING) == 0

    def test_peak_in_flight(self) -> None:
        state = JobState.for_chunks(range(3))
        for index in range(3):
            state.begin_attempt(index)
        state.end_attempt()
        state.end_attempt()
        state.begin_attempt(0)

        assert state.in_flight == 2
        assert state.max_in_flight == 3
