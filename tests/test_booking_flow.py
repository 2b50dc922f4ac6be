from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from app.core.enums import BookingStateEnum
from app.modules.booking.flow import BatchBookingResult, BookingFlow
from app.shared.exceptions import ConflictException

START = datetime(2026, 3, 2, 14, 0, tzinfo=UTC)


@dataclass
class FakeBooking:
    scheduled_at: datetime
    duration_minutes: int


class FakeCommitter:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.single_calls: list[datetime] = []
        self.batch_calls: list[list[datetime]] = []

    async def create_session(self, scheduled_at: datetime) -> UUID:
        self.single_calls.append(scheduled_at)
        if self.error is not None:
            raise self.error
        return uuid4()

    async def create_recurring_sessions(self, occurrences: Sequence[datetime]) -> BatchBookingResult:
        self.batch_calls.append(list(occurrences))
        if self.error is not None:
            raise self.error
        return BatchBookingResult(
            total_booked=len(occurrences),
            total_failed=0,
            session_ids=[uuid4() for _ in occurrences],
            series_id=uuid4(),
        )

    @property
    def calls(self) -> int:
        return len(self.single_calls) + len(self.batch_calls)


def weekly(count: int) -> list[datetime]:
    return [START + timedelta(days=7 * index) for index in range(count)]


@pytest.mark.asyncio
async def test_single_booking_commits_without_preview() -> None:
    committer = FakeCommitter()
    flow = BookingFlow(committer, [START], busy=[], duration_minutes=60)

    state = await flow.submit()

    assert state == BookingStateEnum.COMMITTED
    assert committer.single_calls == [START]
    assert flow.history == [BookingStateEnum.IDLE, BookingStateEnum.COMMITTED]
    assert flow.result is not None
    assert flow.result.total_booked == 1
    assert flow.decision is None


@pytest.mark.asyncio
async def test_single_booking_failure_returns_to_idle_and_propagates() -> None:
    committer = FakeCommitter(error=ConflictException("Selected time is no longer available"))
    flow = BookingFlow(committer, [START], busy=[], duration_minutes=60)

    with pytest.raises(ConflictException):
        await flow.submit()

    assert flow.state == BookingStateEnum.IDLE
    assert flow.result is None


@pytest.mark.asyncio
async def test_series_without_conflicts_commits_every_occurrence() -> None:
    committer = FakeCommitter()
    occurrences = weekly(3)
    flow = BookingFlow(committer, occurrences, busy=[], duration_minutes=60)

    state = await flow.submit()

    assert state == BookingStateEnum.COMMITTED
    assert flow.decision == BookingStateEnum.NO_CONFLICT
    assert committer.batch_calls == [occurrences]
    assert flow.history == [
        BookingStateEnum.IDLE,
        BookingStateEnum.PREVIEW,
        BookingStateEnum.NO_CONFLICT,
        BookingStateEnum.COMMITTED,
    ]


@pytest.mark.asyncio
async def test_partial_conflict_waits_and_confirm_books_only_valid_sessions() -> None:
    committer = FakeCommitter()
    occurrences = weekly(4)
    busy = [FakeBooking(scheduled_at=occurrences[1], duration_minutes=60)]
    flow = BookingFlow(committer, occurrences, busy=busy, duration_minutes=60)

    state = await flow.submit()

    assert state == BookingStateEnum.PARTIAL_CONFLICT
    assert committer.calls == 0
    assert flow.conflict_set is not None
    assert len(flow.conflict_set.conflicts) == 1
    assert len(flow.conflict_set.valid_sessions) == 3

    result = await flow.confirm()

    assert result.total_booked == 3
    assert committer.batch_calls == [[occurrences[0], occurrences[2], occurrences[3]]]
    assert flow.state == BookingStateEnum.COMMITTED


@pytest.mark.asyncio
async def test_partial_conflict_cancel_aborts_without_persistence() -> None:
    committer = FakeCommitter()
    occurrences = weekly(3)
    busy = [FakeBooking(scheduled_at=occurrences[0], duration_minutes=60)]
    flow = BookingFlow(committer, occurrences, busy=busy, duration_minutes=60)

    await flow.submit()
    flow.cancel()

    assert flow.state == BookingStateEnum.ABORTED
    assert flow.decision == BookingStateEnum.PARTIAL_CONFLICT
    assert committer.calls == 0


@pytest.mark.asyncio
async def test_all_conflict_aborts_without_commit_call() -> None:
    committer = FakeCommitter()
    occurrences = weekly(2)
    busy = [FakeBooking(scheduled_at=item - timedelta(minutes=30), duration_minutes=60) for item in occurrences]
    flow = BookingFlow(committer, occurrences, busy=busy, duration_minutes=60)

    state = await flow.submit()

    assert state == BookingStateEnum.ABORTED
    assert flow.decision == BookingStateEnum.ALL_CONFLICT
    assert committer.calls == 0
    assert flow.result is None


@pytest.mark.asyncio
async def test_failed_batch_commit_returns_to_idle() -> None:
    committer = FakeCommitter(error=RuntimeError("database unavailable"))
    flow = BookingFlow(committer, weekly(2), busy=[], duration_minutes=60)

    with pytest.raises(RuntimeError):
        await flow.submit()

    assert flow.state == BookingStateEnum.IDLE


@pytest.mark.asyncio
async def test_illegal_transitions_are_rejected() -> None:
    committer = FakeCommitter()
    flow = BookingFlow(committer, weekly(2), busy=[], duration_minutes=60)

    with pytest.raises(ConflictException):
        await flow.confirm()
    with pytest.raises(ConflictException):
        flow.cancel()

    await flow.submit()

    with pytest.raises(ConflictException):
        await flow.submit()
    with pytest.raises(ConflictException):
        await flow.confirm()
    assert committer.calls == 1


@pytest.mark.asyncio
async def test_every_partition_enters_exactly_one_decision_state() -> None:
    occurrences = weekly(3)
    scenarios = [
        [],
        [FakeBooking(scheduled_at=occurrences[2], duration_minutes=60)],
        [FakeBooking(scheduled_at=item, duration_minutes=60) for item in occurrences],
    ]

    for busy in scenarios:
        flow = BookingFlow(FakeCommitter(), occurrences, busy=busy, duration_minutes=60)
        await flow.submit()
        decisions = [
            state
            for state in flow.history
            if state
            in {
                BookingStateEnum.NO_CONFLICT,
                BookingStateEnum.ALL_CONFLICT,
                BookingStateEnum.PARTIAL_CONFLICT,
            }
        ]
        assert len(decisions) == 1


def test_flow_requires_at_least_one_occurrence() -> None:
    with pytest.raises(ValueError):
        BookingFlow(FakeCommitter(), [], busy=[], duration_minutes=60)
